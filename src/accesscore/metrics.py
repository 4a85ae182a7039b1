from prometheus_client import Counter

users_created_total = Counter(
    "accesscore_users_created_total",
    "Number of internal users created on first login"
)

identities_linked_total = Counter(
    "accesscore_identities_linked_total",
    "Number of identity-provider accounts linked to an existing user",
    ["provider"]
)

identity_conflicts_total = Counter(
    "accesscore_identity_conflicts_total",
    "Number of identity links rejected by the uniqueness constraint",
    ["retryable"]
)

authorization_denied_total = Counter(
    "accesscore_authorization_denied_total",
    "Number of requests rejected by the procedure chain",
    ["reason"]
)

rate_limited_total = Counter(
    "accesscore_rate_limited_total",
    "Number of requests rejected by the rate limiter",
    ["preset"]
)
