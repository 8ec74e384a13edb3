# Copyright 2024, Manifesto Contributors, All rights reserved.


def overrides(interface_class):
    """
    Decorator to check that decorated method is a valid override
    Source: https://stackoverflow.com/a/8313042
    :param interface_class: The super class
    :return:
    """
    assert isinstance(interface_class, type)

    def overrider(method):
        assert method.__name__ in dir(interface_class)
        return method

    return overrider
