"""
Program behavioral tests (diagnostics, help, version, process boundary).

Scope
- Validate leftover-token diagnostics: conflicts, repetitions, misplaced names,
  suggestions and plain unexpected tokens.
- Validate built-in help/version requests and their rendering.
- Validate run(): ParseExit in non-shell mode, printing and exit codes in shell mode.

Conventions
- Test method names follow CamelCase per project convention.
"""

from __future__ import annotations

import io
import unittest
import warnings
from contextlib import redirect_stderr, redirect_stdout
from unittest import TestCase

from argotree import (
    Ambiguous,
    Any,
    Appearance,
    Argument,
    Command,
    Conflict,
    DeprecatedArgumentWarning,
    FaultCode,
    Flag,
    FlagAssignment,
    Literal,
    Misplaced,
    Missing,
    MissingCommand,
    MissingValue,
    ParseExit,
    Positional,
    Product,
    Program,
    Pure,
    Repeated,
    Sum,
    UnknownCommand,
    UnknownSwitch,
    UserRequestedHelp,
    UserRequestedVersion,
)


class TestDiagnostics(TestCase):
    """Behavioral tests for failures explaining leftover tokens."""

    def testConflict(self):
        program = Program(Sum(Flag("-a", required=True), Flag("-b", required=True)), name="prog")
        result = program.parse(["-a", "-b"])
        self.assertIsInstance(result, Conflict)
        self.assertEqual(str(result), "`-b` cannot be used at the same time as `-a`")

    def testRepeated(self):
        result = Program(Flag("-a"), name="prog").parse(["-a", "-a"])
        self.assertIsInstance(result, Repeated)
        self.assertEqual(str(result), "argument `-a` cannot be used multiple times in this context")

    def testSuggestLongName(self):
        result = Program(Flag("--foo"), name="prog").parse(["--fo"])
        self.assertIsInstance(result, UnknownSwitch)
        self.assertEqual(str(result), "no such flag: `--fo`, did you mean `--foo`?")

    def testSuggestTwoDashes(self):
        result = Program(Flag("--verbose"), name="prog").parse(["-verbose"])
        self.assertIsInstance(result, UnknownSwitch)
        self.assertIn("(with one dash), did you mean `--verbose`?", str(result))

    def testSuggestCommand(self):
        grammar = Sum(Command("build", parser=Pure("b")), Command("test", parser=Pure("t")))
        result = Program(grammar, name="prog").parse(["biuld"])
        self.assertIsInstance(result, UnknownCommand)
        self.assertEqual(str(result), "no such command or positional: `biuld`, did you mean `build`?")

    def testNestedName(self):
        grammar = Product(Flag("-v"), Command("alice", parser=Flag("-x")))
        result = Program(grammar, name="prog").parse(["-x", "alice"])
        self.assertIsInstance(result, Misplaced)
        self.assertIn("did you mean to pass it to command `alice`?", str(result))

    def testParentScopeName(self):
        grammar = Product(Flag("-v"), Command("build", parser=Flag("-q")))
        result = Program(grammar, name="prog").parse(["build", "-v"])
        self.assertIsInstance(result, Misplaced)
        self.assertEqual(
            str(result),
            "`-v` is not valid in the context of command `build`, did you mean to pass it before `build`?"
        )
        self.assertEqual(result.route, ("prog", "build"))

    def testMissingCommand(self):
        result = Program(Command("build", parser=Pure(1)), name="prog").parse([])
        self.assertIsInstance(result, MissingCommand)
        self.assertIn("COMMAND", str(result))
        self.assertEqual(result.hint, "run `prog --help` for usage information")

    def testMissingWithLeftover(self):
        result = Program(Flag("-a", required=True), name="prog").parse(["x"])
        self.assertIsInstance(result, Missing)
        self.assertEqual(str(result), "expected `-a`, got `x`")
        self.assertEqual(result.hint, "check the first token, or run `prog --help` for usage information")

    def testDeclaredWordLeftAfterMissing(self):
        for first, label in ((Positional("FILE"), "FILE"), (Argument("-o"), "-o=ARG")):
            grammar = Product(first, Command("build", parser=Pure(1)))
            result = Program(grammar, name="prog").parse(["build"])
            self.assertIsInstance(result, Missing)
            self.assertEqual(str(result), "expected `%s`, got `build`" % label)

    def testDeclaredNameLeftAfterMissing(self):
        grammar = Product(Positional("FILE"), Flag("--verbose"))
        result = Program(grammar, name="prog").parse(["--verbose"])
        self.assertIsInstance(result, Missing)
        self.assertEqual(str(result), "expected `FILE`, got `--verbose`")

    def testCommandHelpInsideSum(self):
        grammar = Sum(Command("build", parser=Flag("-r", descr="release")), Pure(0))
        result = Program(grammar, name="prog").parse(["build", "--help"])
        self.assertIsInstance(result, UserRequestedHelp)
        self.assertIn("Usage: prog build [-r]", Appearance().render(result))

    def testValueLooksLikeName(self):
        grammar = Product(Argument("-b", metavar="N"), Flag("-a"))
        result = Program(grammar, name="prog").parse(["-b", "-a"])
        self.assertIsInstance(result, MissingValue)
        self.assertEqual(str(result), "`-b` wants a value N, got `-a`, try using -b=-a")

    def testFlagWithValue(self):
        result = Program(Flag("--verbose"), name="prog").parse(["--verbose=1"])
        self.assertIsInstance(result, FlagAssignment)

    def testAmbiguousCluster(self):
        grammar = Product(Sum(Flag("-a", required=True), Argument("-a")), Flag("-b"))
        result = Program(grammar, name="prog").parse(["-ab"])
        self.assertIsInstance(result, Ambiguous)
        self.assertEqual(result.route, ("prog",))

    def testRenderedDiagnostic(self):
        result = Program(Flag("-a"), name="prog").parse(["x"])
        text = Appearance().render(result)
        self.assertIn("error[%d]: `x` is not expected in this context" % FaultCode.UNEXPECTED_TOKEN, text)
        self.assertIn("run `prog --help` for usage information", text)

    def testHostFaultCodes(self):
        result = Program(Flag("-a"), name="prog").parse(["x"])
        appearance = Appearance(codes={FaultCode.UNEXPECTED_TOKEN: "E01"})
        self.assertIn("error[E01]", appearance.render(result.__replace__(appearance=appearance)))

    def testDeprecatedWarnsAfterSuccess(self):
        program = Program(Flag("-o", deprecated=True), name="prog")
        with self.assertWarns(DeprecatedArgumentWarning):
            self.assertEqual(program.parse(["-o"]), True)
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            self.assertEqual(program.parse([]), False)


class TestHelp(TestCase):
    """Behavioral tests for help, usage and version rendering."""

    grammar = Product(Flag("-a", "--alice", descr="be alice"), Argument("-b", "--bob", metavar="N", type=int))

    def testHelpRequested(self):
        program = Program(self.grammar, name="prog", version="1.2.3")
        result = program.parse(["--help"])
        self.assertIsInstance(result, UserRequestedHelp)
        text = program.help_text()
        for name in ("-a, --alice", "-b, --bob=N", "-h, --help", "-V, --version", "be alice"):
            self.assertIn(name, text)
        self.assertIn("Usage: prog [-a] -b=N", text)

    def testHelpMentionsOnlyDeclaredNames(self):
        text = Program(self.grammar, name="prog").help_text()
        self.assertNotIn("--version", text)
        self.assertNotIn("-V", text)

    def testHelpNotShadowingDeclaredNames(self):
        program = Program(Flag("-h", "--host"), name="prog")
        self.assertEqual(program.parse(["-h"]), True)
        self.assertIsInstance(program.parse(["--help"]), UserRequestedHelp)

    def testVersionRequested(self):
        program = Program(self.grammar, name="prog", version="1.2.3")
        result = program.parse(["-V"])
        self.assertIsInstance(result, UserRequestedVersion)
        self.assertEqual(Appearance().render(result), "prog — 1.2.3")

    def testVersionUnknownWithoutVersion(self):
        result = Program(self.grammar, name="prog").parse(["-V"])
        self.assertNotIsInstance(result, UserRequestedVersion)

    def testCommandHelpUsesRoute(self):
        grammar = Command("build", parser=Flag("-r", "--release", descr="optimize"), descr="build it")
        program = Program(grammar, name="prog")
        result = program.parse(["build", "--help"])
        self.assertIsInstance(result, UserRequestedHelp)
        self.assertEqual(result.route, ("prog", "build"))
        text = Appearance().render(result)
        self.assertIn("Usage: prog build [-r]", text)
        self.assertIn("optimize", text)

    def testCommandsListed(self):
        grammar = Sum(Command("build", "b", parser=Pure(1), descr="build it"), Command("test", parser=Pure(2)))
        text = Program(grammar, name="prog").help_text()
        self.assertIn("Available commands:", text)
        self.assertIn("build, b", text)
        self.assertIn("Usage: prog COMMAND ...", text)

    def testAnnotations(self):
        grammar = Product(
            Argument("-c", "--color", choices=("red", "blue"), env="COLOR", descr="paint"),
            Argument("-n", metavar="N", type=int).fallback(3),
            Flag("-o", deprecated=True),
        )
        text = Program(grammar, name="prog").help_text()
        self.assertIn("[env:COLOR]", text)
        self.assertIn("[possible values: red, blue]", text)
        self.assertIn("[default: 3]", text)
        self.assertIn("(deprecated)", text)

    def testUsageShapes(self):
        grammar = Product(Sum(Flag("-a", required=True), Flag("-b", required=True)), Positional("FILE").many())
        program = Program(grammar, name="prog")
        self.assertEqual(program.appearance.render(program.render_usage()), "Usage: prog (-a | -b) FILE...")

    def testLiteralAndAny(self):
        grammar = Product(Literal("+turbo", descr="engage turbo"), Any("REST", descr="passed through").many())
        program = Program(grammar, name="prog")
        self.assertEqual(program.appearance.render(program.render_usage()), "Usage: prog +turbo REST...")
        text = program.help_text()
        self.assertIn("Available positional items:", text)
        for fragment in ("+turbo", "engage turbo", "REST", "passed through"):
            self.assertIn(fragment, text)

    def testSections(self):
        grammar = Product(Positional("FILE"), Flag("-q").group("Quiet mode:"))
        text = Program(grammar, name="prog", descr="copies files", footer="see the manual").help_text()
        self.assertIn("Available positional items:", text)
        self.assertIn("Quiet mode:", text)
        self.assertTrue(text.startswith("copies files"))
        self.assertTrue(text.endswith("see the manual"))

    def testHiddenItemsOmitted(self):
        grammar = Product(Flag("-a"), Flag("--secret").hide())
        program = Program(grammar, name="prog")
        self.assertNotIn("--secret", program.help_text())
        self.assertEqual(program.parse(["--secret"]), (False, True))

    def testFancyPanel(self):
        program = Program(Flag("-a"), name="prog", appearance=Appearance(fancy=True, width=60))
        self.assertIn("[ PROG HELP ]", program.help_text())


class TestRun(TestCase):
    """Behavioral tests for the process boundary."""

    def testSuccessReturnsValue(self):
        self.assertEqual(Program(Flag("-a"), name="prog").run(["-a"]), True)

    def testNonShellRaisesParseExit(self):
        program = Program(Flag("-a"), name="prog")
        with self.assertRaises(ParseExit) as caught:
            program.run(["--bogus"])
        self.assertEqual(caught.exception.code, 1)
        self.assertIsInstance(caught.exception, SystemExit)
        with self.assertRaises(ParseExit) as caught:
            program.run(["--help"])
        self.assertEqual(caught.exception.code, 0)

    def testShellPrintsHelpToStdout(self):
        program = Program(Flag("-a"), name="prog", shell=True)
        out = io.StringIO()
        with redirect_stdout(out), self.assertRaises(SystemExit) as caught:
            program.run(["--help"])
        self.assertEqual(caught.exception.code, 0)
        self.assertIn("Usage: prog [-a]", out.getvalue())

    def testShellPrintsDiagnosticToStderr(self):
        program = Program(Flag("-a"), name="prog", shell=True)
        err = io.StringIO()
        with redirect_stderr(err), self.assertRaises(SystemExit) as caught:
            program.run(["x"])
        self.assertEqual(caught.exception.code, 1)
        self.assertIn("`x` is not expected in this context", err.getvalue())

    def testArgumentsMustBeStrings(self):
        with self.assertRaises(TypeError):
            Program(Flag("-a"), name="prog").parse([1])


if __name__ == '__main__':
    unittest.main()
