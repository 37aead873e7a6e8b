"""HTTP transport with error classification and bounded read retries."""
