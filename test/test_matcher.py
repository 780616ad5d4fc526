"""
Matcher behavioral tests (resolution of sums, repetition, optionality).

Scope
- Validate the Sum tie-break and its order independence.
- Validate Many/Optional absorption rules and the catch modifier.
- Validate adjacent and anywhere subtrees.
- Validate the value pipeline (map, parse, guard) and environment fallbacks.

Conventions
- Test method names follow CamelCase per project convention.
- Grammars are driven through Program.parse unless the stream itself is observed.
"""

from __future__ import annotations

import unittest
from unittest import TestCase

from argotree import (
    Any,
    Argument,
    Command,
    Flag,
    GuardRejected,
    Invalid,
    Literal,
    Missing,
    MissingValue,
    Positional,
    Product,
    Program,
    Pure,
    StrictPositional,
    Sum,
    Unexpected,
    UserRequestedHelp,
)
from argotree.matcher import match
from argotree.tokens import TokenStream, split


def parse(grammar, args, **options):
    return Program(grammar, name="prog").parse(args, **options)


class TestSum(TestCase):
    """Behavioral tests for Sum resolution."""

    def testOrderIndependent(self):
        a = Flag("-a", present="a", required=True)
        b = Flag("-b", present="b", required=True)
        for grammar in (Sum(a, b), Sum(b, a)):
            self.assertEqual(parse(grammar, ["-a"]), "a")
            self.assertEqual(parse(grammar, ["-b"]), "b")

    def testFlagAndArgumentSharingName(self):
        grammar = Sum(Flag("-a", present="flag", required=True), Argument("-a", type=int))
        self.assertEqual(parse(grammar, ["-a"]), "flag")
        self.assertEqual(parse(grammar, ["-a", "1"]), 1)

    def testMissingAlternativesMerge(self):
        grammar = Sum(Flag("-a", required=True), Flag("-b", required=True))
        result = parse(grammar, [])
        self.assertIsInstance(result, Missing)
        self.assertEqual(str(result), "expected `-a` or `-b`")

    def testNonConsumingAlternativeIsFallback(self):
        grammar = Sum(Flag("-a", required=True), Pure("neither"))
        self.assertEqual(parse(grammar, []), "neither")
        self.assertEqual(parse(grammar, ["-a"]), True)

    def testInvalidOutranksFallback(self):
        grammar = Sum(Argument("-n", type=int), Pure(0))
        self.assertEqual(parse(grammar, []), 0)
        self.assertEqual(parse(grammar, ["-n", "3"]), 3)
        result = parse(grammar, ["-n", "x"])
        self.assertIsInstance(result, Invalid)
        self.assertIn("couldn't parse `x`", str(result))

    def testCommandHelpOutranksFallback(self):
        grammar = Sum(Command("build", parser=Flag("-r")), Pure(0))
        result = parse(grammar, ["build", "--help"])
        self.assertIsInstance(result, UserRequestedHelp)
        self.assertEqual(result.route, ("prog", "build"))

    def testCommandFailureOutranksFallback(self):
        grammar = Sum(Command("build", parser=Argument("-j", type=int)), Pure(0))
        self.assertEqual(parse(grammar, ["build", "-j", "2"]), 2)
        result = parse(grammar, ["build", "-j", "x"])
        self.assertIsInstance(result, Invalid)
        self.assertEqual(result.route, ("prog", "build"))


class TestMany(TestCase):
    """Behavioral tests for Many."""

    def testEmptyInputYieldsEmptyList(self):
        self.assertEqual(parse(Argument("-x").many(), []), [])
        self.assertEqual(parse(Flag("-v").many(), []), [])

    def testRepeatedFlagsFromCluster(self):
        self.assertEqual(parse(Flag("-v").many().map(len), ["-vvv"]), 3)

    def testClusterEndingInArgument(self):
        grammar = Product(Flag("-v").many().map(len), Argument("-o"))
        self.assertEqual(parse(grammar, ["-vvo", "x"]), (2, "x"))
        self.assertEqual(parse(grammar, ["-vvox"]), (2, "x"))

    def testRepeatedArguments(self):
        grammar = Argument("-I", metavar="DIR").many()
        self.assertEqual(parse(grammar, ["-I", "a", "-Ib", "-I=c"]), ["a", "b", "c"])

    def testSomeNeedsOne(self):
        result = parse(Flag("-a", required=True).some(), [])
        self.assertIsInstance(result, Missing)
        self.assertEqual(str(result), "expected `-a`")

    def testInvalidIsNotAbsorbed(self):
        result = parse(Argument("-n", type=int).many(), ["-n", "1", "-n", "x"])
        self.assertIsInstance(result, Invalid)
        self.assertIn("couldn't parse `x`", str(result))

    def testPositionalsInDeclarationOrder(self):
        grammar = Product(Positional("SRC"), Positional("DST"), Positional("REST").many())
        self.assertEqual(parse(grammar, ["a", "b", "c", "d"]), ("a", "b", ["c", "d"]))


class TestOptional(TestCase):
    """Behavioral tests for Optional and catch."""

    def testAbsentYieldsDefault(self):
        self.assertEqual(parse(Argument("-n", type=int).optional(5), []), 5)

    def testInvalidPropagatesWithoutCatch(self):
        grammar = Product(Argument("-n", type=int).optional(), Positional("FILE"))
        result = parse(grammar, ["-n", "x", "f"])
        self.assertIsInstance(result, Invalid)
        self.assertEqual(result.route, ("prog",))

    def testCatchTurnsInvalidIntoDefault(self):
        tokens = split(["-n", "x"], arguments={"-n"})
        stream = TokenStream(tokens, arguments={"-n"})
        result = match(Argument("-n", type=int).optional(7).catch(), stream)
        self.assertEqual(result, 7)
        self.assertEqual(stream.remaining(), 2)

    def testCatchOnLeafIsMissing(self):
        stream = TokenStream(split(["-n", "x"]), arguments={"-n"})
        result = match(Argument("-n", type=int).catch(), stream)
        self.assertIsInstance(result, Missing)
        self.assertTrue(result.catchable)

    def testMissingValueIsHard(self):
        result = parse(Argument("-b", metavar="N").optional(), ["-b"])
        self.assertIsInstance(result, MissingValue)
        self.assertEqual(str(result), "`-b` requires an argument `N`")


class TestAdjacentAndAnywhere(TestCase):
    """Behavioral tests for contiguous and free-position subtrees."""

    point = Product(
        Flag("--point", required=True),
        Positional("X", type=int),
        Positional("Y", type=int),
        Positional("Z", type=int),
        build=lambda _, x, y, z: (x, y, z),
    ).adjacent()

    def testAdjacentLeavesTrailingToken(self):
        result = parse(self.point, ["--point", "1", "2", "3", "extra"])
        self.assertIsInstance(result, Unexpected)
        self.assertEqual(result.token.raw, "extra")
        self.assertEqual(str(result), "`extra` is not expected in this context")

    def testAdjacentRepeated(self):
        result = parse(self.point.many(), ["--point", "1", "2", "3", "--point", "4", "5", "6"])
        self.assertEqual(result, [(1, 2, 3), (4, 5, 6)])

    def testAdjacentNextToPositional(self):
        grammar = Product(self.point.many(), Positional("FILE"))
        self.assertEqual(parse(grammar, ["--point", "1", "2", "3", "f"]), ([(1, 2, 3)], "f"))

    def testTruncatedGroupIsNotAbsence(self):
        for args in (["--point", "1", "2"], ["--point", "1", "2", "--point", "4", "5", "6"]):
            result = parse(self.point.many(), args)
            self.assertIsInstance(result, Missing)
            self.assertFalse(result.catchable)
            self.assertEqual(str(result), "expected `Z`")

    def testTruncatedGroupInOptional(self):
        result = parse(self.point.optional(), ["--point", "1"])
        self.assertIsInstance(result, Missing)
        self.assertEqual(str(result), "expected `Y`")
        self.assertEqual(result.token.raw, "--point")

    def testAnywhereMatchesInAnyPosition(self):
        grammar = Product(Product(Flag("-k", required=True), Positional("VALUE")).anywhere(), Positional("A"))
        self.assertEqual(parse(grammar, ["a", "-k", "v"]), ((True, "v"), "a"))
        self.assertEqual(parse(grammar, ["-k", "v", "a"]), ((True, "v"), "a"))


def prefixed(prefix):
    return lambda text: text.removeprefix(prefix) if text.startswith(prefix) else None


class TestAnyAndLiteral(TestCase):
    """Behavioral tests for shape-agnostic items."""

    def testAnySkipsDeclinedArguments(self):
        grammar = Product(Any("SRC", check=prefixed("if=")), Any("DST", check=prefixed("of=")))
        self.assertEqual(parse(grammar, ["of=hello", "if=world"]), ("world", "hello"))
        self.assertEqual(parse(grammar, ["if=hello", "of=world"]), ("hello", "world"))

    def testAnyTakesNameShapedArguments(self):
        grammar = Product(Flag("-t", "--turbo"), Any("REST").many())
        self.assertEqual(parse(grammar, ["-foo", "-t", "+x", "--bar=1"]), (True, ["-foo", "+x", "--bar=1"]))

    def testAnyTakesWholeCluster(self):
        grammar = Product(Any("REST"), Flag("-a"), Flag("-b"))
        self.assertEqual(parse(grammar, ["-ab"]), ("-ab", False, False))

    def testAnyCheckErrorIsInvalid(self):
        result = parse(Any("N", check=int), ["x"])
        self.assertIsInstance(result, Invalid)
        self.assertIn("couldn't parse `x`", str(result))

    def testAnyMissing(self):
        result = parse(Any("SRC", check=prefixed("if=")), ["of=x"])
        self.assertIsInstance(result, Missing)
        self.assertEqual(str(result), "expected `SRC`, got `of=x`")

    def testLiteral(self):
        grammar = Product(Literal("+turbo").optional(False), Positional("FILE"))
        self.assertEqual(parse(grammar, ["f", "+turbo"]), (True, "f"))
        self.assertEqual(parse(grammar, ["f"]), (False, "f"))
        self.assertEqual(parse(Literal("-foo", present="foo"), ["-foo"]), "foo")

    def testToggle(self):
        def toggle(text):
            if text in ("+backing", "-backing"):
                return text.startswith("+")
            return None

        grammar = Product(Flag("-t"), Any("BACKING", check=toggle).fallback(False))
        self.assertEqual(parse(grammar, ["-backing", "-t"]), (True, False))
        self.assertEqual(parse(grammar, ["+backing"]), (False, True))
        self.assertEqual(parse(grammar, []), (False, False))


class TestLeaves(TestCase):
    """Behavioral tests for leaf matching and the value pipeline."""

    def testEndToEnd(self):
        grammar = Product(Flag("-a", "--alice"), Argument("-b", "--bob", metavar="N", type=int))
        self.assertEqual(parse(grammar, ["-a", "-b", "10"]), (True, 10))
        self.assertEqual(parse(grammar, "--bob=7"), (False, 7))
        self.assertEqual(parse(grammar, ["-b10", "--alice"]), (True, 10))

    def testStrictPositional(self):
        grammar = Positional("FILE", strict=True)
        self.assertEqual(parse(grammar, ["--", "-x"]), "-x")
        result = parse(grammar, ["x"])
        self.assertIsInstance(result, StrictPositional)
        self.assertEqual(str(result), "expected `FILE` to be on the right side of `--`")

    def testEnvironmentFallback(self):
        grammar = Product(Argument("-t", "--token", env="TOKEN"), Flag("-d", env="DEBUG"))
        self.assertEqual(parse(grammar, [], env={"TOKEN": "abc", "DEBUG": "1"}), ("abc", True))
        self.assertEqual(parse(grammar, ["-t", "xyz"], env={"TOKEN": "abc"}), ("xyz", False))

    def testEnvironmentValueIsConverted(self):
        result = parse(Argument("-n", type=int, env="N"), [], env={"N": "x"})
        self.assertIsInstance(result, Invalid)
        self.assertIn("from environment variable `N`", str(result))

    def testGuard(self):
        grammar = Argument("-n", type=int).guard(lambda value: value > 0, "must be positive")
        self.assertEqual(parse(grammar, ["-n", "3"]), 3)
        result = parse(grammar, ["-n", "0"])
        self.assertIsInstance(result, GuardRejected)
        self.assertEqual(str(result), "`0`: must be positive")

    def testParseStep(self):
        grammar = Argument("-p").parse(lambda raw: tuple(map(int, raw.split(","))))
        self.assertEqual(parse(grammar, ["-p", "1,2"]), (1, 2))
        self.assertIsInstance(parse(grammar, ["-p", "1,z"]), Invalid)

    def testChoices(self):
        grammar = Argument("-c", choices=("red", "blue"))
        self.assertEqual(parse(grammar, ["-c", "red"]), "red")
        result = parse(grammar, ["-c", "green"])
        self.assertIsInstance(result, Invalid)
        self.assertIn("`green` is not a valid choice", str(result))

    def testPureAndBuild(self):
        grammar = Product(Pure(1), Flag("-a"), build=lambda one, a: {"one": one, "a": a})
        self.assertEqual(parse(grammar, ["-a"]), {"one": 1, "a": True})

    def testStatelessAcrossRuns(self):
        program = Program(Flag("-a"), name="prog")
        self.assertEqual(program.parse(["-a"]), True)
        self.assertEqual(program.parse([]), False)
        self.assertEqual(program.parse(["-a"]), True)


if __name__ == '__main__':
    unittest.main()
