#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""Entry Point of the demo."""

import sys

import deferral

if __name__ == "__main__":
    sys.exit(deferral.main())
