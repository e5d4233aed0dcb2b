"""Pure renderers for the files the compose stack consumes.

Nothing here touches the filesystem; the reconciler decides what gets
written and when.
"""

from __future__ import annotations

import html
from dataclasses import dataclass
from typing import Any

import yaml

from .layout import CERT_RESOLVER, PROXY_NETWORK, HostnameRecord, InstallState
from .modes import DeploymentMode

TRAEFIK_IMAGE = "traefik:v3.1"
N8N_IMAGE = "n8nio/n8n:latest"
SUPABASE_DB_IMAGE = "supabase/postgres:15.1.0.117"
SUPABASE_STUDIO_IMAGE = "supabase/studio:20240326-5e5586d"
KONG_IMAGE = "kong:2.8.1"
GOTRUE_IMAGE = "supabase/gotrue:v2.143.0"
POSTGREST_IMAGE = "postgrest/postgrest:v12.0.1"
PG_META_IMAGE = "supabase/postgres-meta:v0.68.0"
REALTIME_IMAGE = "supabase/realtime:v2.25.50"
STORAGE_IMAGE = "supabase/storage-api:v0.43.11"
IMGPROXY_IMAGE = "darthsim/imgproxy:v3.8.0"
EDGE_RUNTIME_IMAGE = "supabase/edge-runtime:v1.45.2"
LOGFLARE_IMAGE = "supabase/logflare:1.4.0"
VECTOR_IMAGE = "timberio/vector:0.28.1-alpine"
COMPOSE_PROJECT = "stackup"
SUPABASE_NETWORK = "supabase_network_project"
SUPABASE_ENV_FILE = "./supabase/docker/.env"
_CORS_HEADERS = (
    "Accept",
    "Accept-Version",
    "Content-Length",
    "Content-MD5",
    "Content-Type",
    "Date",
    "X-Auth-Token",
    "Authorization",
    "X-Forwarded-For",
    "X-Forwarded-Proto",
    "X-Forwarded-Port",
)


@dataclass(frozen=True)
class ProxyConfig:
    mode: DeploymentMode
    email: str
    storage: str
    dashboard: bool = True


def proxy_config_for(state: InstallState) -> ProxyConfig:
    return ProxyConfig(
        mode=state.mode,
        email=state.acme_email,
        storage=state.layout.container_store_path(state.mode),
    )


def _dump(data: dict[str, Any]) -> str:
    dumped = yaml.safe_dump(data, sort_keys=False, default_flow_style=False, allow_unicode=True)
    return dumped if dumped.endswith("\n") else dumped + "\n"


def render_proxy_config(cfg: ProxyConfig) -> str:
    if not cfg.mode.generates_config:
        raise ValueError("Update mode does not render proxy configuration.")
    acme: dict[str, Any] = {
        "email": cfg.email,
        "storage": cfg.storage,
    }
    if cfg.mode.acme_directory:
        acme["caServer"] = cfg.mode.acme_directory
    acme["httpChallenge"] = {"entryPoint": "web"}
    config = {
        "api": {"dashboard": cfg.dashboard},
        "entryPoints": {
            "web": {"address": ":80"},
            "websecure": {"address": ":443"},
        },
        "providers": {
            "docker": {"exposedByDefault": False, "network": PROXY_NETWORK},
        },
        "certificatesResolvers": {CERT_RESOLVER: {"acme": acme}},
    }
    return _dump(config)


def _router_labels(record: HostnameRecord, router: str) -> list[str]:
    labels = [
        "traefik.enable=true",
        f"traefik.http.routers.{router}.rule=Host(`{record.fqdn}`)",
        f"traefik.http.routers.{router}.entrypoints=websecure",
        f"traefik.http.routers.{router}.tls.certresolver={CERT_RESOLVER}",
    ]
    if record.port is None:
        labels.append(f"traefik.http.routers.{router}.service={record.service}")
    else:
        labels.append(f"traefik.http.services.{router}.loadbalancer.server.port={record.port}")
    return labels


def _db_url(user: str) -> str:
    return f"postgres://{user}:${{POSTGRES_PASSWORD}}@${{POSTGRES_HOST}}:${{POSTGRES_PORT}}/${{POSTGRES_DB}}"


def render_compose(state: InstallState) -> str:
    layout = state.layout
    store_name = layout.store_filename(state.mode)
    db_healthy = {"db": {"condition": "service_healthy"}}
    db_and_analytics = {**db_healthy, "analytics": {"condition": "service_healthy"}}
    services: dict[str, Any] = {
        "traefik": {
            "image": TRAEFIK_IMAGE,
            "container_name": "traefik",
            "restart": "unless-stopped",
            "ports": ["80:80", "443:443"],
            "volumes": [
                "/var/run/docker.sock:/var/run/docker.sock:ro",
                "./traefik/traefik.yml:/etc/traefik/traefik.yml:ro",
                f"./letsencrypt/{store_name}:{layout.container_store_path(state.mode)}",
            ],
            "labels": _router_labels(state.hostname("traefik"), "traefik-dashboard"),
            "networks": [PROXY_NETWORK],
        },
        "site": {
            "build": "./site",
            "restart": "unless-stopped",
            "depends_on": ["traefik"],
            "labels": _router_labels(state.hostname("site"), "site"),
            "networks": [PROXY_NETWORK],
        },
        "n8n": {
            "image": N8N_IMAGE,
            "restart": "unless-stopped",
            "depends_on": ["traefik"],
            "env_file": ["./n8n/.env"],
            "volumes": ["./n8n/data:/home/node/.n8n"],
            "labels": _router_labels(state.hostname("n8n"), "n8n"),
            "networks": [PROXY_NETWORK],
        },
        "db": {
            "image": SUPABASE_DB_IMAGE,
            "container_name": "supabase-db",
            "restart": "unless-stopped",
            "env_file": [SUPABASE_ENV_FILE],
            "environment": {
                "POSTGRES_HOST": "/var/run/postgresql",
                "PGPORT": "${POSTGRES_PORT}",
                "PGPASSWORD": "${POSTGRES_PASSWORD}",
                "PGDATABASE": "${POSTGRES_DB}",
                "PGUSER": "${POSTGRES_USER}",
                "POSTGRES_INITDB_ARGS": "--auth-host=md5",
            },
            "volumes": [
                "./volumes/db/data:/var/lib/postgresql/data:Z",
                "./volumes/db/realtime.sql:/docker-entrypoint-initdb.d/migrations/99-realtime.sql:Z",
                "./volumes/db/webhooks.sql:/docker-entrypoint-initdb.d/init-scripts/98-webhooks.sql:Z",
            ],
            "healthcheck": {
                "test": ["CMD-SHELL", "pg_isready -U postgres -h localhost"],
                "interval": "5s",
                "timeout": "5s",
                "retries": 10,
            },
            "networks": ["default"],
        },
        "kong": {
            "image": KONG_IMAGE,
            "container_name": "supabase-kong",
            "restart": "unless-stopped",
            "depends_on": db_healthy,
            "env_file": [SUPABASE_ENV_FILE],
            "environment": {
                "KONG_DATABASE": "off",
                "KONG_DECLARATIVE_CONFIG": "/var/lib/kong/kong.yml",
                "KONG_DNS_ORDER": "LAST,A,CNAME",
                "KONG_PLUGINS": "request-transformer,cors,key-auth,acl,basic-auth",
            },
            "volumes": ["./volumes/api/kong.yml:/var/lib/kong/kong.yml:ro"],
            "labels": _router_labels(state.hostname("supabase"), "supabase-api"),
            "networks": [PROXY_NETWORK, "default"],
        },
        "auth": {
            "image": GOTRUE_IMAGE,
            "container_name": "supabase-auth",
            "restart": "unless-stopped",
            "depends_on": db_healthy,
            "env_file": [SUPABASE_ENV_FILE],
            "environment": {
                "GOTRUE_API_HOST": "0.0.0.0",
                "GOTRUE_API_PORT": "9999",
                "API_EXTERNAL_URL": "${API_EXTERNAL_URL}",
                "GOTRUE_DB_DRIVER": "postgres",
                "GOTRUE_DB_DATABASE_URL": _db_url("supabase_auth_admin"),
                "GOTRUE_SITE_URL": "${SITE_URL}",
                "GOTRUE_URI_ALLOW_LIST": "${ADDITIONAL_REDIRECT_URLS}",
                "GOTRUE_DISABLE_SIGNUP": "${DISABLE_SIGNUP}",
                "GOTRUE_JWT_ADMIN_ROLES": "service_role",
                "GOTRUE_JWT_AUD": "authenticated",
                "GOTRUE_JWT_DEFAULT_GROUP_NAME": "authenticated",
                "GOTRUE_JWT_EXP": "${JWT_EXPIRY}",
                "GOTRUE_JWT_SECRET": "${JWT_SECRET}",
                "GOTRUE_EXTERNAL_EMAIL_ENABLED": "${ENABLE_EMAIL_SIGNUP}",
                "GOTRUE_MAILER_AUTOCONFIRM": "${ENABLE_EMAIL_AUTOCONFIRM}",
                "GOTRUE_SMTP_HOST": "${SMTP_HOST}",
                "GOTRUE_SMTP_PORT": "${SMTP_PORT}",
                "GOTRUE_SMTP_USER": "${SMTP_USER}",
                "GOTRUE_SMTP_PASS": "${SMTP_PASS}",
                "GOTRUE_SMTP_SENDER_NAME": "${SMTP_SENDER_NAME}",
            },
            "networks": ["default"],
        },
        "rest": {
            "image": POSTGREST_IMAGE,
            "container_name": "supabase-rest",
            "restart": "unless-stopped",
            "depends_on": db_healthy,
            "env_file": [SUPABASE_ENV_FILE],
            "environment": {
                "PGRST_DB_URI": _db_url("authenticator"),
                "PGRST_DB_SCHEMAS": "${PGRST_DB_SCHEMAS}",
                "PGRST_DB_ANON_ROLE": "anon",
                "PGRST_JWT_SECRET": "${JWT_SECRET}",
                "PGRST_DB_USE_LEGACY_GUCS": "false",
            },
            "command": "postgrest",
            "networks": ["default"],
        },
        "meta": {
            "image": PG_META_IMAGE,
            "container_name": "supabase-meta",
            "restart": "unless-stopped",
            "depends_on": db_and_analytics,
            "env_file": [SUPABASE_ENV_FILE],
            "environment": {
                "PG_META_PORT": "8080",
                "PG_META_DB_HOST": "${POSTGRES_HOST}",
                "PG_META_DB_PORT": "${POSTGRES_PORT}",
                "PG_META_DB_NAME": "${POSTGRES_DB}",
                "PG_META_DB_USER": "supabase_admin",
                "PG_META_DB_PASSWORD": "${POSTGRES_PASSWORD}",
            },
            "networks": ["default"],
        },
        "studio": {
            "image": SUPABASE_STUDIO_IMAGE,
            "container_name": "supabase-studio",
            "restart": "unless-stopped",
            "depends_on": db_healthy,
            "env_file": [SUPABASE_ENV_FILE],
            "environment": {
                "STUDIO_PG_META_URL": "http://meta:8080",
                "POSTGRES_PASSWORD": "${POSTGRES_PASSWORD}",
                "DEFAULT_ORGANIZATION_NAME": "${STUDIO_DEFAULT_ORGANIZATION}",
                "DEFAULT_PROJECT_NAME": "${STUDIO_DEFAULT_PROJECT}",
                "SUPABASE_URL": "http://kong:8000",
                "SUPABASE_PUBLIC_URL": "${SUPABASE_PUBLIC_URL}",
                "SUPABASE_ANON_KEY": "${ANON_KEY}",
                "SUPABASE_SERVICE_KEY": "${SERVICE_ROLE_KEY}",
            },
            "labels": _router_labels(state.hostname("studio"), "supabase-studio"),
            "networks": [PROXY_NETWORK, "default"],
        },
        "realtime": {
            "image": REALTIME_IMAGE,
            "container_name": "supabase-realtime",
            "restart": "unless-stopped",
            "depends_on": db_and_analytics,
            "env_file": [SUPABASE_ENV_FILE],
            "environment": {
                "PORT": "4000",
                "DB_HOST": "${POSTGRES_HOST}",
                "DB_PORT": "${POSTGRES_PORT}",
                "DB_USER": "supabase_realtime_admin",
                "DB_PASSWORD": "${POSTGRES_PASSWORD}",
                "DB_NAME": "${POSTGRES_DB}",
                "DB_AFTER_CONNECT_QUERY": "SET search_path TO _realtime",
                "DB_ENC_KEY": "supabaserealtime",
                "API_JWT_SECRET": "${JWT_SECRET}",
                "FLY_ALLOC_ID": "fly123",
                "FLY_APP_NAME": "realtime",
                "SECRET_KEY_BASE": "${SECRET_KEY_BASE}",
                "ERL_AFLAGS": "-proto_dist inet_tcp",
                "ENABLE_TAILSCALE": "false",
                "DNS_NODES": "''",
            },
            "command": (
                "sh -c \"/app/bin/migrate && /app/bin/realtime eval "
                "'Realtime.Release.seeds(Realtime.Repo)' && /app/bin/server\""
            ),
            "healthcheck": {
                "test": ["CMD", "bash", "-c", "printf \\0 > /dev/tcp/localhost/4000"],
                "interval": "5s",
                "timeout": "5s",
                "retries": 3,
            },
            "networks": ["default"],
        },
        "storage": {
            "image": STORAGE_IMAGE,
            "container_name": "supabase-storage",
            "restart": "unless-stopped",
            "depends_on": {
                **db_healthy,
                "rest": {"condition": "service_started"},
                "imgproxy": {"condition": "service_started"},
            },
            "env_file": [SUPABASE_ENV_FILE],
            "environment": {
                "ANON_KEY": "${ANON_KEY}",
                "SERVICE_KEY": "${SERVICE_ROLE_KEY}",
                "POSTGREST_URL": "http://rest:3000",
                "PGRST_JWT_SECRET": "${JWT_SECRET}",
                "DATABASE_URL": _db_url("supabase_storage_admin"),
                "FILE_SIZE_LIMIT": "52428800",
                "STORAGE_BACKEND": "file",
                "FILE_STORAGE_BACKEND_PATH": "/var/lib/storage",
                "TENANT_ID": "stub",
                "REGION": "stub",
                "GLOBAL_S3_BUCKET": "stub",
                "ENABLE_IMAGE_TRANSFORMATION": "true",
                "IMGPROXY_URL": "http://imgproxy:5001",
            },
            "volumes": ["./volumes/storage:/var/lib/storage:z"],
            "healthcheck": {
                "test": ["CMD", "wget", "--no-verbose", "--tries=1", "--spider", "http://localhost:5000/status"],
                "interval": "5s",
                "timeout": "5s",
                "retries": 3,
            },
            "networks": ["default"],
        },
        "imgproxy": {
            "image": IMGPROXY_IMAGE,
            "container_name": "supabase-imgproxy",
            "restart": "unless-stopped",
            "env_file": [SUPABASE_ENV_FILE],
            "environment": {
                "IMGPROXY_BIND": ":5001",
                "IMGPROXY_LOCAL_FILESYSTEM_ROOT": "/",
                "IMGPROXY_USE_ETAG": "true",
                "IMGPROXY_ENABLE_WEBP_DETECTION": "${IMGPROXY_ENABLE_WEBP_DETECTION}",
            },
            "volumes": ["./volumes/storage:/var/lib/storage:z"],
            "healthcheck": {
                "test": ["CMD", "imgproxy", "health"],
                "interval": "5s",
                "timeout": "5s",
                "retries": 3,
            },
            "networks": ["default"],
        },
        "functions": {
            "image": EDGE_RUNTIME_IMAGE,
            "container_name": "supabase-edge-functions",
            "restart": "unless-stopped",
            "depends_on": {"analytics": {"condition": "service_healthy"}},
            "env_file": [SUPABASE_ENV_FILE],
            "environment": {
                "JWT_SECRET": "${JWT_SECRET}",
                "SUPABASE_URL": "http://kong:8000",
                "SUPABASE_ANON_KEY": "${ANON_KEY}",
                "SUPABASE_SERVICE_ROLE_KEY": "${SERVICE_ROLE_KEY}",
                "SUPABASE_DB_URL": _db_url("postgres"),
                "VERIFY_JWT": "${FUNCTIONS_VERIFY_JWT}",
            },
            "volumes": ["./volumes/functions:/home/deno/functions:Z"],
            "command": ["start", "--main-service", "/home/deno/functions/main"],
            "networks": ["default"],
        },
        "analytics": {
            "image": LOGFLARE_IMAGE,
            "container_name": "supabase-analytics",
            "restart": "unless-stopped",
            "depends_on": db_healthy,
            "env_file": [SUPABASE_ENV_FILE],
            "environment": {
                "LOGFLARE_NODE_HOST": "127.0.0.1",
                "DB_USERNAME": "supabase_admin",
                "DB_DATABASE": "${POSTGRES_DB}",
                "DB_HOSTNAME": "${POSTGRES_HOST}",
                "DB_PORT": "${POSTGRES_PORT}",
                "DB_PASSWORD": "${POSTGRES_PASSWORD}",
                "DB_SCHEMA": "_analytics",
                "LOGFLARE_API_KEY": "${LOGFLARE_API_KEY}",
                "LOGFLARE_SINGLE_TENANT": "true",
                "LOGFLARE_SUPABASE_MODE": "true",
                "LOGFLARE_MIN_CLUSTER_SIZE": "1",
                "RELEASE_COOKIE": "cookie",
            },
            "entrypoint": [
                "sh",
                "-c",
                "/app/bin/migrate && /app/bin/logflare eval 'Logflare.Release.seeds(Logflare.Repo)'"
                " && /app/bin/logflare start --smp=1",
            ],
            "healthcheck": {
                "test": ["CMD", "curl", "http://localhost:4000/health"],
                "interval": "5s",
                "timeout": "5s",
                "retries": 10,
            },
            "networks": ["default"],
        },
        "vector": {
            "image": VECTOR_IMAGE,
            "container_name": "supabase-vector",
            "restart": "unless-stopped",
            "env_file": [SUPABASE_ENV_FILE],
            "environment": {"LOGFLARE_API_KEY": "${LOGFLARE_API_KEY}"},
            "volumes": [
                "./volumes/logs/vector.yml:/etc/vector/vector.yml:ro",
                "/var/run/docker.sock:/var/run/docker.sock:ro",
            ],
            "command": ["--config", "/etc/vector/vector.yml"],
            "healthcheck": {
                "test": ["CMD", "vector", "--version"],
                "interval": "10s",
                "timeout": "3s",
                "retries": 3,
            },
            "networks": ["default"],
        },
    }
    compose = {
        "name": COMPOSE_PROJECT,
        "networks": {
            PROXY_NETWORK: {"external": True},
            "default": {"name": SUPABASE_NETWORK},
        },
        "services": services,
    }
    return _dump(compose)


def render_kong_config(anon_key: str, service_key: str) -> str:
    def _service(name: str, url: str, path: str, *, key_auth: bool) -> dict[str, Any]:
        plugins: list[dict[str, Any]] = [{"name": "cors"}]
        if key_auth:
            plugins.append({"name": "key-auth", "config": {"hide_credentials": False}})
        return {
            "name": name,
            "url": url,
            "routes": [{"name": f"{name}-all", "strip_path": True, "paths": [path]}],
            "plugins": plugins,
        }

    config = {
        "_format_version": "1.1",
        "consumers": [
            {"username": "anon", "keyauth_credentials": [{"key": anon_key}]},
            {"username": "service_role", "keyauth_credentials": [{"key": service_key}]},
        ],
        "acls": [
            {"consumer": "anon", "group": "anon"},
            {"consumer": "service_role", "group": "service_role"},
        ],
        "services": [
            _service("auth-v1-open", "http://auth:9999/verify", "/auth/v1/verify", key_auth=False),
            _service("auth-v1-open-callback", "http://auth:9999/callback", "/auth/v1/callback", key_auth=False),
            _service("auth-v1-open-authorize", "http://auth:9999/authorize", "/auth/v1/authorize", key_auth=False),
            _service("auth-v1", "http://auth:9999/", "/auth/v1/", key_auth=True),
            _service("rest-v1", "http://rest:3000/", "/rest/v1/", key_auth=True),
            _service("realtime-v1", "http://realtime:4000/socket/", "/realtime/v1/", key_auth=True),
            _service("storage-v1", "http://storage:5000/", "/storage/v1/", key_auth=False),
            _service("functions-v1", "http://functions:9000/", "/functions/v1/", key_auth=False),
            _service("meta", "http://meta:8080/", "/pg/", key_auth=True),
        ],
        "plugins": [
            {
                "name": "cors",
                "config": {
                    "origins": ["*"],
                    "methods": ["GET", "HEAD", "PUT", "PATCH", "POST", "DELETE"],
                    "headers": list(_CORS_HEADERS),
                    "exposed_headers": ["X-Resource-Count"],
                    "credentials": True,
                    "max_age": 300,
                },
            }
        ],
    }
    return _dump(config)


def render_vector_config() -> str:
    # ${...} is expanded by vector from its own environment.
    config = {
        "data_dir": "/tmp/vector/",
        "api": {"enabled": True, "address": "0.0.0.0:8686"},
        "sources": {
            "docker_host": {
                "type": "docker_logs",
                "include_labels": [f"com.docker.compose.project={COMPOSE_PROJECT}"],
            },
        },
        "sinks": {
            "logflare_logs": {
                "type": "http",
                "inputs": ["docker_host"],
                "uri": "http://analytics:4000/logs/logflare?source_token=${LOGFLARE_API_KEY}&source=${VECTOR_SOURCE}",
                "method": "post",
                "healthcheck_uri": "http://analytics:4000/health",
                "buffer": {"type": "disk", "max_size": 104857600, "when_full": "block"},
                "request": {
                    "strategy": "adaptive",
                    "retry_max_duration_secs": 10,
                    "retry_initial_backoff_secs": 2,
                    "timeout_secs": 60,
                },
                "batch": {"max_bytes": 1048576, "timeout_secs": 5},
                "compression": "gzip",
                "encoding": {"codec": "json"},
                "auth": {"strategy": "bearer", "token": "${LOGFLARE_API_KEY}"},
            },
        },
    }
    return _dump(config)


def render_db_init_scripts() -> dict[str, str]:
    return {
        "realtime.sql": (
            '\\echo "Loading Realtime"\n'
            "create schema if not exists realtime;\n"
            "drop publication if exists supabase_realtime;\n"
            "create publication supabase_realtime;\n"
        ),
        "webhooks.sql": (
            '\\echo "Loading Webhooks"\n'
            "create schema if not exists webhooks;\n"
        ),
    }


def render_functions_main() -> str:
    return (
        "// Entry service for the edge runtime; replace with your own router.\n"
        "Deno.serve(() =>\n"
        "  new Response(JSON.stringify({ error: \"no functions deployed\" }), {\n"
        "    status: 404,\n"
        "    headers: { \"Content-Type\": \"application/json\" },\n"
        "  }),\n"
        ");\n"
    )


def render_site_index(state: InstallState) -> str:
    links = [
        ("Supabase", state.hostname("supabase").url),
        ("Supabase Studio", state.hostname("studio").url),
        ("n8n", state.hostname("n8n").url),
        ("Traefik Dashboard", state.hostname("traefik").url),
    ]
    items = "\n".join(
        f'      <li><a href="{html.escape(url)}">{html.escape(label)}</a></li>' for label, url in links
    )
    return "\n".join(
        [
            "<!doctype html>",
            "<html>",
            f'  <head><meta charset="utf-8"><title>{html.escape(state.domain_base)}</title></head>',
            "  <body>",
            f"    <h1>{html.escape(state.domain_base)}</h1>",
            "    <ul>",
            items,
            "    </ul>",
            "  </body>",
            "</html>",
        ]
    ) + "\n"


def render_site_dockerfile() -> str:
    return "FROM nginx:alpine\nCOPY index.html /usr/share/nginx/html/index.html\n"
