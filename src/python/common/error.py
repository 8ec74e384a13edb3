# Copyright 2024, Manifesto Contributors, All rights reserved.


class AppError(Exception):
    """
    Exception indicating an error
    """

    pass


class ServiceExit(AppError):
    """
    Custom exception which is used to trigger the clean exit
    of all running threads and the main program.
    """

    pass
