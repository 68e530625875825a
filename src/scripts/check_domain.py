#!/usr/bin/env python3
"""
check_domain.py

Entry point for the cold email readiness check. Runs the MX, SPF, DKIM,
DMARC and WHOIS-age checks from the inbox_readiness package for one
domain and prints the verdict with recommendations.

Usage:
    python check_domain.py example.com
"""

from inbox_readiness.cli import main

if __name__ == "__main__":
    main()
