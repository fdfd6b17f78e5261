"""
Splunk forwarder runner.

Runs splunkd and a follower of its log under restart supervision, and exposes
splunkd's health as liveness, readiness and Prometheus metrics endpoints.
"""

__version__ = "0.1.0"
