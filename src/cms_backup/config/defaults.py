"""Default unified application configuration.

The CMS keeps its whole configuration in a single ``options`` row named
``configs`` whose value is a JSON object keyed by section.  Legacy
archives spread the same sections over one option row each; the legacy
migrator folds them into this shape, starting from these defaults.
"""

import copy
from typing import Any

UNIFIED_CONFIG_OPTION = "configs"

DEFAULT_OBJECT_KEY_TEMPLATE = "backups/{Y}/{m}/{filename}"

DEFAULT_APP_CONFIG: dict[str, Any] = {
    "seo": {
        "title": "我的小世界呀",
        "description": "哈喽~欢迎光临",
        "keywords": [],
    },
    "url": {
        "web_url": "http://localhost:2323",
        "admin_url": "http://localhost:2333/proxy/qaqdmin",
        "server_url": "http://localhost:2333",
        "ws_url": "http://localhost:2333",
    },
    "mail_options": {
        "enable": False,
        "provider": "smtp",
        "from": "",
        "smtp": {
            "user": "",
            "pass": "",
            "options": {"host": "", "port": 465, "secure": True},
        },
        "resend": {"api_key": ""},
    },
    "comment_options": {
        "anti_spam": False,
        "ai_review": False,
        "ai_review_type": "binary",
        "ai_review_threshold": 5,
        "test_ai_review": "__action__",
        "disable_comment": False,
        "spam_keywords": [],
        "block_ips": [],
        "disable_no_chinese": False,
        "comment_should_audit": False,
        "record_ip_location": True,
    },
    "backup_options": {
        "enable": False,
        "path": "backups/{Y}/{m}/backup-{Y}{m}{d}-{h}{i}{s}.zip",
    },
    "baidu_search_options": {"enable": False, "token": None},
    "algolia_search_options": {
        "enable": False,
        "app_id": "",
        "api_key": "",
        "index_name": "",
        "max_truncate_size": 10000,
    },
    "admin_extra": {
        "enable_admin_proxy": True,
        "gaodemap_key": None,
        "background": "",
    },
    "friend_link_options": {
        "allow_apply": True,
        "allow_sub_path": False,
        "enable_avatar_internalization": True,
    },
    "s3_options": {
        "endpoint": "",
        "access_key_id": "",
        "secret_access_key": "",
        "bucket": "",
        "region": "",
        "custom_domain": "",
        "path_style_access": False,
    },
    "image_bed_options": {
        "enable": False,
        "path": "images/{Y}/{m}/{uuid}.{ext}",
        "allowed_formats": "jpg,jpeg,png,gif,webp",
        "max_size_mb": 10,
    },
    "image_storage_options": {
        "enable": False,
        "sync_on_publish": False,
        "delete_local_after_sync": False,
        "endpoint": None,
        "secret_id": None,
        "secret_key": None,
        "bucket": None,
        "region": "auto",
        "custom_domain": "",
        "prefix": "",
    },
    "third_party_service_integration": {"github_token": ""},
    "text_options": {"macros": True},
    "bing_search_options": {"enable": False, "token": None},
    "meili_search_options": {
        "enable": True,
        "index_name": "mx-space",
        "search_cache_ttl": 300,
    },
    "feature_list": {"email_subscribe": False},
    "bark_options": {
        "enable": False,
        "key": "",
        "server_url": "https://api.day.app",
        "enable_comment": True,
        "enable_throttle_guard": False,
    },
    "auth_security": {"disable_password_login": False},
    "ai": {
        "providers": [],
        "enable_summary": False,
        "enable_auto_generate_summary": False,
        "ai_summary_target_language": "auto",
    },
    "oauth": {"providers": [], "secrets": {}, "public": {}},
}


def default_app_config() -> dict[str, Any]:
    """Return a fresh, mutable copy of the default unified configuration."""
    return copy.deepcopy(DEFAULT_APP_CONFIG)
