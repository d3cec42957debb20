#!/usr/bin/env python3
from resilient_pinger.main import run

if __name__ == "__main__":
    run()
