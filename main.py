from rich.pretty import pprint

from cmdweave import *


def add(p):
    left = p.argument(int, required=True, metavar="LEFT")
    right = p.argument(int, required=True, metavar="RIGHT")
    p.handler(lambda: pprint(left + right))


def configure(p):
    p.descr("tiny calculator")
    verbose = p.option("-v", "--verbose", type=bool, descr="chatty output")
    p.command("add", add, descr="add two numbers")
    p.handler(lambda: pprint(verbose))


if __name__ == '__main__':
    pprint(run(configure))
