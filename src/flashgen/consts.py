VERSION = "0.3.0"
USER_AGENT = f"flashgen/{VERSION}"
