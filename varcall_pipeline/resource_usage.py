# -*- coding: utf-8 -*-
"""Resource usage definition"""

import typing

import attr


@attr.s(frozen=True, auto_attribs=True)
class ResourceUsage:
    """Resource usage specification of a single stage, handed to the script writer and turned
    into scheduler directives by the scheduler adapter.
    """

    threads: int
    time: str
    memory: str
    partition: typing.Optional[str] = None


#: Resources of the small bookkeeping stages (cleanup, metrics collection)
BOOKKEEPING_RESOURCES = ResourceUsage(threads=1, time="01:00:00", memory="256M")

#: Resources of the cross-sample collation stage
COLLATE_RESOURCES = ResourceUsage(threads=1, time="24:00:00", memory="4G")
