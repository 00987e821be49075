#!/usr/bin/env python3
"""
repo-mirror-sync - Mirror the repositories of a GitHub account into a
GitLab group (or another GitHub owner).

Each run clones new repositories into a local cache of bare mirrors, fetches
the ones already cached, pushes every branch and tag to the destination and
brings the destination description and archive state in line with the source.
Runs are idempotent: a second run against a synchronized pair changes nothing.

Copyright (c) 2025 Michele Tavella <meeghele@proton.me>
Licensed under the MIT License. See LICENSE file for details.

Author: Michele Tavella <meeghele@proton.me>
License: MIT
"""

from cli import main

if __name__ == "__main__":
    main()
