# config.py

from typing import Any

# Default crawl settings, mirroring the CrawlerOptions defaults
DEFAULT_CONFIG = {
    "CRAWLER_CONFIG": {
        "MAX_CONCURRENCY": 4,  # Simultaneous fetches
        "MAX_CRAWL_QUEUE_LENGTH": 10,  # Items staged in the worker pool at once
        "INTERVAL": 250,  # Delay in milliseconds before each fetch
        "TIMEOUT": 30000,  # Request timeout in milliseconds
        "FOLLOW_REDIRECT": True,
        "MAX_REDIRECTS": 10,
    },
    # HTTP settings
    "HTTP_CONFIG": {
        "HEADERS": {
            "user-agent": "Python/flexcrawl 0.1.0",
        },
        "PROXY": None,
        "ENCODING": None,  # Force a body encoding instead of the response charset
    },
}

# Example configurations for different use cases
CONFIGS = {
    "default": DEFAULT_CONFIG,
    "polite": {
        **DEFAULT_CONFIG,
        "CRAWLER_CONFIG": {
            **DEFAULT_CONFIG["CRAWLER_CONFIG"],
            "MAX_CONCURRENCY": 1,
            "MAX_CRAWL_QUEUE_LENGTH": 5,
            "INTERVAL": 2000,
        },
    },
    "fast": {
        **DEFAULT_CONFIG,
        "CRAWLER_CONFIG": {
            **DEFAULT_CONFIG["CRAWLER_CONFIG"],
            "MAX_CONCURRENCY": 16,
            "MAX_CRAWL_QUEUE_LENGTH": 64,
            "INTERVAL": 50,
            "TIMEOUT": 10000,
        },
    },
}


def options_from_config(config: dict[str, Any]) -> dict[str, Any]:
    """
    Flatten a configuration template into CrawlerOptions keyword values.

    Args:
        config: One entry of CONFIGS

    Returns:
        Option values keyed by CrawlerOptions field name
    """
    crawler_config = config.get("CRAWLER_CONFIG", {})
    http_config = config.get("HTTP_CONFIG", {})

    options = {key.lower(): value for key, value in crawler_config.items()}
    options.update(
        {key.lower(): value for key, value in http_config.items() if value is not None}
    )
    return options
