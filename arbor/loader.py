"""
Arbor loader: the registry of tool definitions and the lazy source machinery behind it.

Registry
- Maps a tool name (tuple of words, root is ()) to the active Definition or Alias.
- Entries remember the load generation that produced them. Every executed source
  opens a new generation; directives of one generation accumulate into the same
  Definition, a later generation of equal or higher priority replaces it with a
  fresh object, and a lower priority never overrides a higher one.

Sources
- Paths (files or directories), in-memory blocks (callables receiving a ToolBuilder)
  and module globs. Every source is queued on a worklist together with the name
  prefix it covers and its priority, and is executed at most once.
- A lookup only executes the queued sources that could define the requested
  name; the rest stay queued until some later lookup or listing needs them.

Lookup
- lookup(args) takes the leading words of args (up to the first "-..." token),
  finds the longest bound prefix, follows aliases, and returns the definition
  together with the arguments that were not consumed as tool name words.
"""
import importlib
import importlib.util
import logging
from pathlib import Path

from .builder import ToolBuilder
from .definitions import Alias, Definition
from .faults import AliasCycleError, AliasError, ResolutionError, SourceError
from .utils import Unset, coalesce, mglob

logger = logging.getLogger(__name__)


def _covers(words, prefix, /, *, under=False):
    """
    True when a source registered at words can define prefix (or, with under, anything below prefix).
    """
    if prefix[:len(words)] == words:
        return True
    return under and words[:len(prefix)] == prefix


def _hidden(words, /):
    return any(word.startswith("_") for word in words)


class Loader:
    """
    Registry of tool definitions fed lazily from configuration sources.

    Parameters
    - index_file_name: the file that configures a directory's own namespace.
    - middleware_stack: resolved middleware instances copied into every new definition.
    """

    def __init__(self, *, index_file_name=".arbor.py", middleware_stack=()):
        self._index_file_name = index_file_name
        self._middleware_stack = list(middleware_stack)
        self._registry = {}
        self._worklist = []
        self._loaded = set()
        self._generation = 0
        self._min_priority = 0
        self._max_priority = 0

    def __repr__(self):
        return f"Loader(tools={len(self._registry)}, queued={len(self._worklist)})"

    @property
    def index_file_name(self):
        return self._index_file_name

    @property
    def middleware_stack(self):
        return list(self._middleware_stack)

    # ── Sources ─────────────────────────────────────────────────────────────

    def _next_priority(self, high_priority):
        if high_priority:
            self._max_priority += 1
            return self._max_priority
        self._min_priority -= 1
        return self._min_priority

    def add_path(self, path, /, high_priority=False):
        """
        Register a configuration file or directory covering the whole tree.

        Each registration gets a fresh priority: above every earlier source when
        high_priority is set, below every earlier source otherwise.
        """
        path = Path(path)
        if not path.exists():
            raise SourceError("configuration path %s does not exist" % path)
        priority = self._next_priority(high_priority)
        self._worklist.append((path, (), priority))
        logger.debug("queued path %s at priority %d", path, priority)
        return self

    def add_block(self, configure, /, name=Unset, high_priority=False):
        """
        Register an in-memory source: a callable receiving the root ToolBuilder.
        """
        if not callable(configure):
            raise SourceError("configuration block must be callable")
        priority = self._next_priority(high_priority)
        self._worklist.append((_Block(configure, coalesce(name, None)), (), priority))
        logger.debug("queued block %r at priority %d", configure, priority)
        return self

    def add_modules(self, pattern, /, high_priority=False):
        """
        Register every module matching a dotted module glob; each must define configure(tool).
        """
        names = mglob(pattern)
        if not names:
            raise SourceError("no module matches %r" % pattern)
        for name in names:
            module = importlib.import_module(name)
            if not callable(configure := getattr(module, "configure", None)):
                raise SourceError("module %s does not define configure(tool)" % name)
            self.add_block(configure, name=name, high_priority=high_priority)
        return self

    def include_path(self, path, words, remaining_words, priority, /, generation=Unset):
        """
        Load a path source covering words.

        Files load immediately. For a directory, the index file loads
        immediately, and so does the child named by the first of remaining_words
        (recursively, with the rest of them); every other child is queued for a
        later lookup. With remaining_words None all children are queued. Passing
        generation lets the included source contribute to the definitions of the
        source that included it.
        """
        path, words = Path(path), tuple(words)
        if not path.exists():
            raise SourceError("configuration path %s does not exist" % path)
        if remaining_words is not None:
            remaining_words = tuple(remaining_words)
        self._load(path, words, priority, generation, remaining_words)
        return self

    def _load_for_prefix(self, prefix, /, *, under=False):
        while relevant := [item for item in self._worklist if _covers(item[1], prefix, under=under)]:
            self._worklist = [item for item in self._worklist if item not in relevant]
            for source, words, priority in relevant:
                self._load(source, words, priority)

    def _load(self, source, words, priority, generation=Unset, remaining_words=None):
        key = (source.resolve() if isinstance(source, Path) else source, words)
        if key in self._loaded:
            return
        self._loaded.add(key)

        if isinstance(source, _Block):
            logger.debug("loading block %r for %r", source.name or source.configure, words)
            source.configure(ToolBuilder(self, words, priority, self._open(generation), source.name))
        elif source.is_dir():
            self._load_dir(source, words, priority, remaining_words)
        else:
            self._load_file(source, words, priority, self._open(generation))

    def _open(self, generation):
        if generation is not Unset:
            return generation
        self._generation += 1
        return self._generation

    def _load_dir(self, path, words, priority, remaining_words=None):
        logger.debug("loading directory %s for %r", path, words)
        if (index := path / self._index_file_name).is_file():
            self._load(index, words, priority)
        for child in sorted(path.iterdir()):
            if child.name.startswith(".") or child.name == "__pycache__":
                continue
            if child.is_dir():
                word = child.name
            elif child.suffix == ".py":
                word = child.stem
            else:
                continue
            if remaining_words and remaining_words[0] == word:
                self._load(child, words + (word,), priority, remaining_words=remaining_words[1:])
            else:
                self._worklist.append((child, words + (word,), priority))

    def _load_file(self, path, words, priority, generation):
        logger.debug("loading file %s for %r at priority %d", path, words, priority)
        spec = importlib.util.spec_from_file_location("arbor_source_%d" % generation, path)
        if spec is None or spec.loader is None:
            raise SourceError("cannot load configuration file %s" % path)
        module = importlib.util.module_from_spec(spec)
        try:
            spec.loader.exec_module(module)
        except (OSError, SyntaxError) as exception:
            raise SourceError("cannot load configuration file %s: %s" % (path, exception)) from exception
        if not callable(configure := getattr(module, "configure", None)):
            raise SourceError("configuration file %s does not define configure(tool)" % path)
        configure(ToolBuilder(self, words, priority, generation, str(path)))

    # ── Registry ────────────────────────────────────────────────────────────

    def activate(self, words, priority, generation, /):
        """
        Return the definition a source of this priority and generation should configure.

        Returns None when a higher-priority entry already owns the name.
        """
        words = tuple(words)
        if (entry := self._registry.get(words)) is not None:
            tool, owner = entry
            if tool.priority > priority:
                return None
            if owner == generation:
                if isinstance(tool, Alias):
                    raise AliasError("cannot configure %r because it is an alias" % tool.display_name)
                return tool
            logger.debug("replacing %r with a definition at priority %d", tool, priority)
        tool = Definition(self, words, priority, self._middleware_stack)
        self._registry[words] = (tool, generation)
        return tool

    def make_alias(self, words, target, priority, generation, /, source_path=None):
        """
        Bind words to an alias of target; returns the alias, or None when outranked.
        """
        words, target = tuple(words), tuple(target)
        if not words:
            raise AliasError("cannot create an alias for the root tool")
        if words == target:
            raise AliasError("alias %r cannot target itself" % " ".join(words))
        if (entry := self._registry.get(words)) is not None:
            tool, owner = entry
            if tool.priority > priority:
                return None
            if owner == generation and isinstance(tool, Definition) and tool.includes_definition():
                raise AliasError("cannot make %r an alias because it is already defined" % tool.display_name)

        visited = [words]
        cursor = target
        while isinstance(found := self.get_definition(cursor), Alias):
            if cursor in visited:
                break
            visited.append(cursor)
            cursor = found.target_name
        if cursor in visited:
            raise AliasCycleError(
                "alias %r would create a cycle through %s"
                % (" ".join(words), ", ".join(map(" ".join, visited)))
            )

        alias = Alias(words, target, priority, source_path)
        self._registry[words] = (alias, generation)
        return alias

    def get_definition(self, words, /):
        """Active entry (Definition or Alias) for exactly words, without loading anything."""
        if (entry := self._registry.get(tuple(words))) is not None:
            return entry[0]
        return None

    def _resolve(self, words):
        visited = []
        while isinstance(tool := self.get_definition(words), Alias):
            if words in visited:
                raise AliasCycleError(
                    "alias cycle detected: %s" % " -> ".join(map(" ".join, [*visited, words]))
                )
            visited.append(words)
            logger.debug("following alias %r to %r", " ".join(words), " ".join(tool.target_name))
            self._load_for_prefix(words := tool.target_name)
            if self.get_definition(words) is None:
                raise ResolutionError(
                    "alias %r targets %r, which is not defined" % (" ".join(visited[-1]), " ".join(words))
                )
        return tool

    def lookup(self, args, /):
        """
        Resolve the tool named by the leading words of args.

        Returns (definition, remaining): the longest bound prefix (aliases followed)
        and the arguments after it. With nothing bound, a synthetic empty root is
        returned with every argument remaining.
        """
        args = list(args)
        words = []
        for arg in args:
            if arg.startswith("-"):
                break
            words.append(arg)
        words = tuple(words)

        for size in range(len(words), -1, -1):
            self._load_for_prefix(prefix := words[:size])
            if (tool := self._resolve(prefix)) is not None:
                logger.debug("lookup %r resolved to %r", words, tool)
                return tool, args[size:]

        logger.debug("lookup %r fell back to an empty root", words)
        return Definition(self, (), self._min_priority, self._middleware_stack), args

    def list_subtools(self, words, /, recursive=False, include_hidden=False):
        """
        Active entries below words (direct children, or the whole subtree), sorted by name.
        """
        words = tuple(words)
        self._load_for_prefix(words, under=True)
        found = []
        for name, (tool, _) in self._registry.items():
            relative = name[len(words):]
            if name[:len(words)] != words or not relative:
                continue
            if len(relative) > 1 and not recursive:
                continue
            if _hidden(relative) and not include_hidden:
                continue
            found.append(tool)
        return sorted(found, key=lambda tool: tool.full_name)

    def has_subtools(self, words, /):
        return bool(self.list_subtools(words))


class _Block:
    """An in-memory source: a configure callable plus an optional label used as its source path."""

    def __init__(self, configure, name, /):
        self.configure = configure
        self.name = name

    def __eq__(self, other):
        return isinstance(other, _Block) and self.configure is other.configure

    def __hash__(self):
        return hash(self.configure)


__all__ = (
    "Loader",
)
