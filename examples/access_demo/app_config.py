import redis

from kms_jwt import (
    AuthExtension,
    AwsKmsKeyService,
    InMemoryCache,
    RedisCache,
    ScopeAuthorizer,
    load_settings,
)

SETTINGS = load_settings()

key_service = AwsKmsKeyService(region_name=SETTINGS.aws_region)

# Secret cache and revocation records share one Redis in production
if SETTINGS.redis_url:
    _client = redis.Redis.from_url(SETTINGS.redis_url)
    secret_cache = RedisCache(_client, prefix="kms-jwt:")
    revocations = RedisCache(_client, prefix="kms-jwt:")
else:
    secret_cache = InMemoryCache()
    revocations = InMemoryCache()

# auth will be the ext imported in the Flask app
auth = AuthExtension(
    key_service,
    audience=SETTINGS.audience or "profile.localtest.me",
    revocation_store=revocations,
    secret_cache=secret_cache,
    authorizer=ScopeAuthorizer(),
    issuer=SETTINGS.issuer,
)
