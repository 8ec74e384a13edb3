# Copyright 2024, Manifesto Contributors, All rights reserved.

from .scanner import SystemScanner, SystemScannerError
