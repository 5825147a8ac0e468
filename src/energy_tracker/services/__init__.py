"""Call sites wiring the store, permission filter and aggregation core."""
