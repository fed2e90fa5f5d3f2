from nisqa.util.http import DEFAULT_TIMEOUT, HttpClient, json_body
from nisqa.util.polling import poll_until

__all__ = ["DEFAULT_TIMEOUT", "HttpClient", "json_body", "poll_until"]
