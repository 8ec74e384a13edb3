# Copyright 2024, Manifesto Contributors, All rights reserved.


class Constants:
    """
    POD class to hold shared constants
    :return:
    """

    SERVICE_NAME = "manifesto"
    MAX_LOG_SIZE_IN_BYTES = 10 * 1024 * 1024  # 10 MB
    LOG_BACKUP_COUNT = 10
    # Read buffer used when streaming a file through a hasher
    DEFAULT_HASH_BUFFER_SIZE = 128 * 1024  # 128 KB
    XML_PRETTY_PRINT_INDENT = "  "
    # How long the main thread sleeps between checks on a running validator
    MAIN_THREAD_SLEEP_INTERVAL_IN_SECS = 0.5
