"""Core logic for multi-timeframe signal scoring and outcome verification.

This package contains pure business logic with no I/O dependencies
(no files, sockets or HTTP). The live engine in ``app`` wires it to the
candle API, the websocket price feed and the JSON-lines logs.
"""
