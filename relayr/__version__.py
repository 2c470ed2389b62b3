__title__ = "relayr"
__description__ = "An asyncio HTTP client with composable cancellation and wall-clock timeouts."
__version__ = "0.1.0"
