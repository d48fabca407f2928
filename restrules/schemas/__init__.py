"""
restrules schema definitions

Any schema of a sample resource has a base name and optionally an extended
name ``Creation`` for the body used to create a new instance of that schema.
For example, there are two classes to represent users: ``User`` and
``UserCreation`` (and ``UserV1`` for the first API version).

This package also contains the ``config`` module, but it's not
exported by default, since it's only used by the settings.
"""

from .bases import *
from .errors import *
from .extra import *
