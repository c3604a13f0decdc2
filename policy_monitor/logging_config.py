# policy_monitor/logging_config.py
import logging

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s - %(message)s"


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=(level or "INFO").upper(), format=LOG_FORMAT)
    # the google-ads client logs every request/response at INFO
    logging.getLogger("google.ads.googleads.client").setLevel(logging.WARNING)
