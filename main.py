from rich.pretty import pprint

from argotree import *

build = Product(
    Flag("-r", "--release", descr="Build with optimizations"),
    Argument("-j", "--jobs", metavar="N", type=int, descr="Parallel jobs").fallback(1),
)

program = Program(
    Product(
        Flag("-v", "--verbose", descr="Talk more").many().map(len),
        Sum(
            Command("build", "b", parser=build, descr="Compile the project"),
            Command("clean", parser=Pure("clean"), descr="Remove build artifacts"),
        ),
    ),
    name="demo",
    version="0.1.0",
    appearance=Appearance(colorful=True),
    shell=True,
)


if __name__ == '__main__':
    pprint(program.run())
