class WeatherServiceError(Exception):
    pass


class ConfigError(WeatherServiceError):
    pass


class CacheUnavailable(WeatherServiceError):
    """Cache store read or write failed. Never reaches the caller."""


class CredentialUnavailable(WeatherServiceError):
    pass


class OriginUnavailable(WeatherServiceError):
    pass


class FormattingError(WeatherServiceError):
    """A successful upstream payload is missing a field the response needs."""
