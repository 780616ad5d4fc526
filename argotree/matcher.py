"""
Argotree matcher: drives a grammar over a token stream.

match(node, stream) returns the node's value or a Failure, committing the
consumed tokens into the stream only on success. resolve(program, stream)
wraps it for one program scope: built-in help/version, then the grammar, then
an explanation for the first token nobody consumed.

Resolution rules
- Sum: every alternative runs on its own fork of the stream. Among the
  successes that consumed tokens, the one starting leftmost wins, then the
  one consuming more tokens, then the first declared. A consuming loser is
  recorded as a conflict so a leftover token can be explained. Without a
  consuming success: a help/version request first, then the hard failure
  that got furthest, then the first non-consuming success, otherwise the
  merged Missing expectations.
- Many: repeat on forks until an attempt fails or consumes nothing. A
  failure stops the loop when it is plain absence (catchable and nothing
  consumed) or when the node has catch; any other failure propagates.
- Optional: the same rule for a single attempt, producing the default.
- catch on any other node turns its failure into Missing (absence).
- adjacent: the subtree only sees the contiguous run of tokens starting at
  the first token its first leaf accepts, and ending at the first token no
  remaining leaf accepts.
- anywhere: like adjacent, trying every start position until one matches.
"""
import difflib
import logging

from .faults import *
from .grammar import *
from .tokens import TokenKind
from .utils import *
from .visitor import item, items

logger = logging.getLogger(__name__)

_requests = (UserRequestedHelp, UserRequestedVersion)


def match(node, stream, /):
    """match node against stream; consumption is committed only on success."""
    if "catch" in node._modifiers and not isinstance(node, Many | Optional):
        fork = stream.fork()
        result = _modified(node, fork)
        if isinstance(result, _requests):
            return result
        if isinstance(result, Failure):
            logger.debug("caught %r below %s", result, type(node).__typename__)
            return Missing(expected=items(node), cause=result)
        stream.commit(fork)
        return result
    return _modified(node, stream)


def _modified(node, stream):
    mark = len(stream.consumed)
    if "anywhere" in node._modifiers:
        result = _anywhere(node, stream)
    elif "adjacent" in node._modifiers and not isinstance(node, Command):
        result = _adjacent(node, stream)
    else:
        result = _dispatch(node, stream)
    if isinstance(result, Failure) or not node._steps:
        return result
    return _pipeline(node, result, stream, stream.consumed[mark:])


def _pipeline(node, value, stream, consumed):
    if consumed:
        token = stream[max(consumed)]
        raw = token.value if token.named and token.value is not None else token.text
    else:
        raw = str(value)
    for kind, function, message in node._steps:
        match kind:
            case "map":
                value = function(value)
            case "parse":
                try:
                    value = function(value)
                except Exception as error:
                    return Invalid("couldn't parse %s: %s" % (quote(raw), error), token=stream[max(consumed)] if consumed else None)
            case "guard":
                if not function(value):
                    return GuardRejected("%s: %s" % (quote(raw), message), token=stream[max(consumed)] if consumed else None)
    return value


def _dispatch(node, stream):
    match node:
        case Flag():
            return _flag(node, stream)
        case Argument():
            return _argument(node, stream)
        case Positional():
            return _positional(node, stream)
        case Command():
            return _command(node, stream)
        case Any():
            return _any(node, stream)
        case Literal():
            return _literal(node, stream)
        case Pure():
            return node.value
        case Product():
            return _product(node, stream)
        case Sum():
            return _sum(node, stream)
        case Many():
            return _many(node, stream)
        case Optional():
            return _optional(node, stream)
        case _:
            raise TypeError(f"unknown grammar node {type(node).__name__!r}")


# --- leaves ---

def _deprecation(node, token, stream):
    if node._deprecated:
        stream.note(DeprecatedArgumentWarning("%s is deprecated" % quote(token.text)))


def _convert(node, raw, token, *, source=None):
    try:
        value = node._type(raw)
    except Exception as error:
        if source is not None:
            return Invalid("couldn't parse %s from %s: %s" % (quote(raw), source, error), token=token)
        return Invalid("couldn't parse %s: %s" % (quote(raw), error), token=token)
    if node._choices and value not in node._choices:
        return InvalidChoice(
            "%s is not a valid choice for %s, expected one of %s" % (
                quote(raw),
                quote(str(item(node))),
                ", ".join(quote(str(choice)) for choice in node._choices),
            ),
            token=token,
        )
    return value


def _flag(node, stream):
    if (index := stream.find_named(node._names)) is None:
        if node._env is not Unset and stream.env.get(node._env):
            return node._present
        if node._required:
            return Missing(expected=(item(node),))
        return node._absent
    token = stream[index]
    if token.value is not None:
        return FlagAssignment(
            "%s does not take a value, got %s" % (quote(token.name), quote(token.value)),
            token=token,
        )
    stream.consume(index, node)
    _deprecation(node, token, stream)
    return node._present


def _argument(node, stream):
    if (index := stream.find_named(node._names)) is None:
        if node._env is not Unset and (raw := stream.env.get(node._env)) is not None:
            return _convert(node, raw, None, source="environment variable %s" % quote(node._env))
        if node._default is not Unset:
            return node._default
        return Missing(expected=(item(node),))

    token = stream[index]
    if token.value is not None:
        stream.consume(index, node)
        raw = token.value
    else:
        following = stream.peek_at(index + 1)
        if following is None or following.strict or stream.is_consumed(index + 1):
            return MissingValue(
                "%s requires an argument %s" % (quote(token.name), quote(node._metavar)),
                token=token,
                expected=(item(node),),
            )
        if following.named:
            return MissingValue(
                "%s wants a value %s, got %s, try using %s=%s" % (
                    quote(token.name), node._metavar, quote(following.text), token.name, following.text
                ),
                token=following,
                expected=(item(node),),
            )
        stream.consume(index, node)
        stream.consume(index + 1, node)
        raw = following.raw
    _deprecation(node, token, stream)
    return _convert(node, raw, token)


def _positional(node, stream):
    if (index := stream.find_word()) is None:
        if node._default is not Unset:
            return node._default
        return Missing(expected=(item(node),))
    token = stream[index]
    if node._strict and not token.strict:
        return StrictPositional(
            "expected %s to be on the right side of `--`" % quote(node._metavar),
            token=token,
            expected=(item(node),),
        )
    stream.consume(index, node)
    _deprecation(node, token, stream)
    return _convert(node, token.raw, token)


def _arguments(stream):
    """
    unconsumed input arguments before the fence, as (indices, text) pairs;
    the tokens split from one argument come back whole.
    """
    fence = stream.fence
    taken = set()
    for index in stream.unconsumed():
        if index >= fence:
            break
        if index in taken or stream.reserved(index):
            continue
        token = stream[index]
        siblings = stream.siblings(index)
        if token.origin is not None and not any(map(stream.is_consumed, siblings)):
            taken.update(siblings)
            yield siblings, token.raw
        else:
            yield [index], token.text


def _any(node, stream):
    for indices, text in _arguments(stream):
        try:
            value = node._check(text)
        except Exception as error:
            return Invalid("couldn't parse %s: %s" % (quote(text), error), token=stream[indices[0]])
        if value is not None:
            for index in indices:
                stream.consume(index, node)
            return value
    return Missing(expected=(item(node),))


def _literal(node, stream):
    for indices, text in _arguments(stream):
        if text == node._word:
            for index in indices:
                stream.consume(index, node)
            return node._present
    return Missing(expected=(item(node),))


def _command(node, stream):
    index = stream.find_word(fenced=False)
    if index is None or stream[index].strict or stream[index].raw not in node._names:
        return MissingCommand(expected=(item(node),))
    program = node._program
    stream.consume(index, node)

    start, stop = index + 1, stream.window[1]
    if "adjacent" in node._modifiers:
        stop = _extent(_leaves(program._grammar) + [(flag, False) for flag in program._builtins], stream, start, stop)

    logger.debug("entering command %r with tokens %d..%d", program.name, start, stop)
    scope = stream.narrow(start, stop, commands=program._index.commands, route=stream.route + (program,))
    result = resolve(program, scope)
    if isinstance(result, Failure):
        return result
    stream.commit(scope)
    return result


# --- combinators ---

def _product(node, stream):
    values = []
    for child in node._children:
        result = match(child, stream)
        if isinstance(result, Failure):
            return result
        values.append(result)
    if node._build is not Unset:
        return node._build(*values)
    return tuple(values)


def _sum(node, stream):
    outcomes = []
    for position, alternative in enumerate(node._alternatives):
        fork = stream.fork()
        outcomes.append((position, fork, match(alternative, fork)))

    successes = [outcome for outcome in outcomes if not isinstance(outcome[2], Failure)]
    if consuming := [outcome for outcome in successes if outcome[1].consumed]:
        winner = min(consuming, key=lambda outcome: (outcome[1].head, -len(outcome[1].consumed), outcome[0]))
        _, fork, result = winner
        for position, loser, _ in consuming:
            if loser is not fork and not fork.is_consumed(loser.head):
                fork.conflicts.setdefault(loser.head, fork.head)
        logger.debug("sum picked alternative %d of %d (tokens %s)", winner[0], len(outcomes), list(fork.consumed))
        stream.commit(fork)
        return result

    # A request or a hard failure outranks a success that consumed nothing.
    failures = [outcome for outcome in outcomes if isinstance(outcome[2], Failure)]
    for _, _, result in failures:
        if isinstance(result, _requests):
            return result
    if hard := [outcome for outcome in failures if not outcome[2].catchable or outcome[1].consumed]:
        return max(hard, key=lambda outcome: (len(outcome[1].consumed), -outcome[0]))[2]
    if successes:
        _, fork, result = successes[0]
        stream.commit(fork)
        return result

    missing = [result for _, _, result in failures if isinstance(result, Missing)]
    merged = missing[0]
    for result in missing[1:]:
        merged = merged.merge(result)
    return merged


def _many(node, stream):
    values = []
    last = None
    while True:
        fork = stream.fork()
        result = match(node._inner, fork)
        if isinstance(result, _requests):
            return result
        if isinstance(result, Failure):
            if (result.catchable and not fork.consumed) or "catch" in node._modifiers:
                last = result
                break
            return result
        if not fork.consumed:
            break
        stream.commit(fork)
        values.append(result)
    logger.debug("many collected %d value(s)", len(values))
    if len(values) < node._at_least:
        if isinstance(last, Missing):
            return last
        return Missing(expected=items(node._inner))
    return values


def _optional(node, stream):
    fork = stream.fork()
    result = match(node._inner, fork)
    if isinstance(result, _requests):
        return result
    if isinstance(result, Failure):
        if (result.catchable and not fork.consumed) or "catch" in node._modifiers:
            return node.default
        return result
    stream.commit(fork)
    return result


# --- adjacent and anywhere ---

def _leaves(node, repeatable=False):
    """leaves below node in declaration order, with whether they may repeat."""
    match node:
        case Flag() | Argument() | Positional() | Command() | Any() | Literal():
            return [(node, repeatable)]
        case Many():
            return _leaves(node._inner, True)
        case Product():
            return [leaf for child in node._children for leaf in _leaves(child, repeatable)]
        case Sum():
            return [leaf for child in node._alternatives for leaf in _leaves(child, repeatable)]
        case Optional():
            return _leaves(node._inner, repeatable)
        case _:
            return []


def _accepts(leaf, token):
    match leaf:
        case Flag() | Argument():
            return token.named and token.name in leaf._names
        case Positional():
            return token.kind is TokenKind.WORD and (token.strict or not leaf._strict)
        case Command():
            return token.kind is TokenKind.WORD and not token.strict and token.raw in leaf._names
        case Literal():
            return token.raw == leaf._word
        case Any():
            try:
                return leaf._check(token.raw) is not None
            except Exception:
                # reported as Invalid once matched
                return True
    return False


def _extent(leaves, stream, start, stop):
    """end of the contiguous run starting at start that the leaves accept."""
    pending = list(leaves)
    index = start
    while index < stop and not stream.is_consumed(index):
        token = stream[index]
        for position, (leaf, repeatable) in enumerate(pending):
            if _accepts(leaf, token):
                break
        else:
            break
        if not repeatable:
            del pending[position]
        if isinstance(leaf, Command):
            return stop
        index += 1
        if isinstance(leaf, Argument) and token.value is None:
            index += 1
        if isinstance(leaf, Any | Literal) and token.origin is not None:
            while index < stop and stream[index].origin == token.origin:
                index += 1
    return min(index, stop)


def _absent(node, stream):
    """match node against an empty window: its defaults, or what it misses."""
    start, _ = stream.window
    return _dispatch(node, stream.narrow(start, start))


def _starts(first, stream):
    """candidate start positions: named leaves never look past the fence."""
    start, stop = stream.window
    if isinstance(first, Flag | Argument | Any | Literal):
        stop = stream.fence
    for index in range(start, stop):
        if not stream.is_consumed(index):
            yield index


def _adjacent(node, stream):
    if not (leaves := _leaves(node)):
        return _dispatch(node, stream)
    first, _ = leaves[0]
    for index in _starts(first, stream):
        if _accepts(first, stream[index]):
            break
    else:
        return _absent(node, stream)

    stop = _extent(leaves, stream, index, stream.window[1])
    scope = stream.narrow(index, stop)
    result = _dispatch(node, scope)
    if isinstance(result, Failure):
        if result.catchable:
            # the leading token is there, so the rest of the run is missing, not absent
            return result.__replace__(catchable=False, token=stream[index])
        return result
    stream.commit(scope)
    return result


def _anywhere(node, stream):
    if not (leaves := _leaves(node)):
        return _dispatch(node, stream)
    first, _ = leaves[0]
    failure = None
    for index in list(_starts(first, stream)):
        if not _accepts(first, stream[index]):
            continue
        stop = _extent(leaves, stream, index, stream.window[1])
        scope = stream.narrow(index, stop)
        result = _dispatch(node, scope)
        if isinstance(result, Failure):
            if failure is None and not result.catchable:
                failure = result
            continue
        if scope.consumed:
            stream.commit(scope)
            return result
    if failure is not None:
        return failure
    return _absent(node, stream)


# --- program scope ---

def _requested(program, stream):
    start, _ = stream.window
    for index in range(start, stream.fence):
        token = stream[index]
        if not token.named or stream.is_consumed(index):
            continue
        for flag, request in zip(program._builtins, program._requests):
            if token.name in flag._names:
                return request(program=program, token=token)
    return None


def _nested(program, name):
    """name of the innermost command below program that declares name."""
    for command in dict.fromkeys(program._index.commands.values()):
        sub = command._program
        if (deeper := _nested(sub, name)) is not None:
            return deeper
        if name in sub._index.names:
            return command._names[0]
    return None


def explain(program, stream, index, /, *, quiet=False):
    """
    Diagnose the leftover token at index, most specific explanation first.

    With quiet=True only a specific explanation is returned (None otherwise),
    so a Missing failure can keep its own wording.
    """
    token = stream[index]
    route = tuple(scope.name for scope in stream.route)
    options = {"token": token, "route": route}

    if (winner := stream.conflicts.get(index)) is not None:
        return Conflict(
            "%s cannot be used at the same time as %s" % (quote(token.text), quote(stream[winner].text)),
            **options
        )

    if token.named:
        start, stop = stream.window
        for other in range(start, stop):
            claimant = stream.claimant(other)
            if (
                other != index and
                isinstance(claimant, Flag | Argument) and
                stream[other].named and
                token.name in claimant._names
            ):
                return Repeated("argument %s cannot be used multiple times in this context" % quote(token.name), **options)

        if (command := _nested(program, token.name)) is not None:
            return Misplaced(
                "%s is not valid in this context, did you mean to pass it to command %s?" % (quote(token.text), quote(command)),
                **options
            )

        for scope in stream.route[:-1]:
            if token.name in scope._index.names:
                return Misplaced(
                    "%s is not valid in the context of command %s, did you mean to pass it before %s?" % (
                        quote(token.text), quote(program.name), quote(program.name)
                    ),
                    **options
                )

        names = program._index.names
        if token.kind is TokenKind.SHORT and len(token.name) > 2 and "-" + token.name in names:
            return UnknownSwitch(
                "no such flag: %s (with one dash), did you mean %s?" % (quote(token.text), quote("-" + token.name)),
                **options
            )
        if token.kind is TokenKind.LONG and len(token.name) == 3 and token.name[1:] in names:
            return UnknownSwitch(
                "no such flag: %s (with two dashes), did you mean %s?" % (quote(token.text), quote(token.name[1:])),
                **options
            )
        if token.name not in names and (close := difflib.get_close_matches(token.name, program._index.longs, n=1)):
            return UnknownSwitch("no such flag: %s, did you mean %s?" % (quote(token.text), quote(close[0])), **options)
    elif not token.strict and token.raw not in program._index.commands:
        if close := difflib.get_close_matches(token.raw, list(program._index.commands), n=1):
            return UnknownCommand(
                "no such command or positional: %s, did you mean %s?" % (quote(token.raw), quote(close[0])),
                **options
            )

    if quiet:
        return None
    return Unexpected(**options)


def resolve(program, stream, /):
    """
    Match one program scope: help/version requests, then the grammar, then the
    first leftover token, if any, becomes the failure.
    """
    route = tuple(scope.name for scope in stream.route)
    if (request := _requested(program, stream)) is not None:
        return request.__replace__(route=route)

    result = match(program._grammar, stream)
    leftover = next(stream.unconsumed(), None)

    if isinstance(result, Failure):
        if (
            isinstance(result, Missing) and
            result.catchable and
            result.message is Unset and
            leftover is not None and
            "got" not in result.options
        ):
            if (diagnostic := explain(program, stream, leftover, quiet=True)) is not None:
                return diagnostic
            token = stream[leftover]
            return result.__replace__(got=token.text, token=token, route=result.route or route)
        return result.__replace__(route=result.route or route)

    if leftover is not None:
        return explain(program, stream, leftover)
    return result


__all__ = (
    "match",
    "resolve",
    "explain",
)
