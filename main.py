import time

from rich.pretty import pprint

from caravan import *

__prog__ = "caravan-demo"
__concurrency__ = 2


def slow(value, delay):
    def task():
        time.sleep(delay)
        return value
    return task


def broken():
    raise RuntimeError("upstream refused the connection")


if __name__ == '__main__':
    defer(lambda: print("deferred: demo finished"))
    pprint(run({
        "alpha": slow(1, 0.2),
        "beta": broken,
        "gamma": slow(3, 0.1),
        "delta": slow(4, 2.0),
    }, ExecutorConfig(timeout=0.5)))
