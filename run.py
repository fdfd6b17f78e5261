"""Run the forwarder runner."""

import sys

from splunk_runner.__main__ import main

if __name__ == "__main__":
    sys.exit(main())
