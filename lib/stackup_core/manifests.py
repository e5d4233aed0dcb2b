from __future__ import annotations

from .envfile import SecretSpec, b64_secret, hex_secret, literal
from .layout import InstallState


def supabase_env_manifest(state: InstallState) -> list[SecretSpec]:
    base = state.domain_base
    api_url = state.hostname("supabase").url
    n8n_url = state.hostname("n8n").url
    site_url = state.hostname("site").url
    return [
        hex_secret("POSTGRES_PASSWORD"),
        literal("POSTGRES_USER", "postgres"),
        literal("POSTGRES_DB", "postgres"),
        literal("POSTGRES_HOST", "db"),
        literal("POSTGRES_PORT", "5432"),
        b64_secret("JWT_SECRET"),
        literal("JWT_EXPIRY", "3600"),
        b64_secret("ANON_KEY"),
        b64_secret("SERVICE_ROLE_KEY"),
        b64_secret("VAULT_ENC_KEY"),
        b64_secret("LOGFLARE_PUBLIC_ACCESS_TOKEN"),
        b64_secret("LOGFLARE_PRIVATE_ACCESS_TOKEN"),
        literal("DASHBOARD_USERNAME", "admin"),
        b64_secret("DASHBOARD_PASSWORD"),
        b64_secret("SECRET_KEY_BASE"),
        literal("SMTP_HOST", f"smtp.{base}"),
        literal("SMTP_PORT", "587"),
        literal("SMTP_USER", f"no-reply@{base}"),
        b64_secret("SMTP_PASS"),
        literal("SMTP_ADMIN_EMAIL", f"admin@{base}"),
        literal("SMTP_SENDER_NAME", "Supabase"),
        literal("SITE_URL", site_url),
        literal("SUPABASE_PUBLIC_URL", api_url),
        literal("API_EXTERNAL_URL", api_url),
        literal("ADDITIONAL_REDIRECT_URLS", n8n_url),
        literal("MAILER_URLPATHS_CONFIRMATION", "/auth/confirm"),
        literal("MAILER_URLPATHS_RECOVERY", "/auth/recover"),
        literal("MAILER_URLPATHS_INVITE", "/auth/invite"),
        literal("MAILER_URLPATHS_EMAIL_CHANGE", "/auth/change"),
        literal("ENABLE_EMAIL_SIGNUP", "true"),
        literal("ENABLE_ANONYMOUS_USERS", "false"),
        literal("ENABLE_PHONE_SIGNUP", "false"),
        literal("ENABLE_PHONE_AUTOCONFIRM", "false"),
        literal("ENABLE_EMAIL_AUTOCONFIRM", "false"),
        literal("DISABLE_SIGNUP", "false"),
        literal("PGRST_DB_SCHEMAS", "public"),
        hex_secret("LOGFLARE_API_KEY"),
        literal("VECTOR_SOURCE", "docker"),
        literal("FUNCTIONS_VERIFY_JWT", "true"),
        literal("DOCKER_SOCKET_LOCATION", "/var/run/docker.sock"),
        literal("IMGPROXY_ENABLE_WEBP_DETECTION", "true"),
        literal("POOLER_PROXY_PORT_TRANSACTION", "6543"),
        literal("POOLER_TENANT_ID", "default"),
        literal("POOLER_DEFAULT_POOL_SIZE", "20"),
        literal("POOLER_MAX_CLIENT_CONN", "100"),
        literal("POOLER_DB_POOL_SIZE", "20"),
        literal("STUDIO_DEFAULT_ORGANIZATION", "Default Organization"),
        literal("STUDIO_DEFAULT_PROJECT", "Default Project"),
    ]


def n8n_env_manifest(state: InstallState) -> list[SecretSpec]:
    return [
        literal("N8N_BASIC_AUTH_ACTIVE", "true"),
        literal("N8N_BASIC_AUTH_USER", "admin"),
        b64_secret("N8N_BASIC_AUTH_PASSWORD", 16),
        b64_secret("N8N_ENCRYPTION_KEY"),
        literal("GENERIC_TIMEZONE", "Europe/Amsterdam"),
        literal("N8N_HOST", state.hostname("n8n").fqdn),
        literal("N8N_PROTOCOL", "https"),
        literal("WEBHOOK_URL", state.hostname("n8n").url + "/"),
    ]
