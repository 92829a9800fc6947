"""
Manifest store for git-dependency.

The manifest is a small section based text file kept in the working copy root:

    [dependency "path/to/dep"]
      branch = master
      commit = HEAD
      path = path/to/dep
      url = https://example.com/owner/pkg.git

A section is either flat (``[section]`` followed by variables) or named
(``[section "name"]`` blocks, one record per name). Output is always sorted
so the file diffs cleanly under version control.
"""

import logging
import re
from pathlib import Path

logger = logging.getLogger(__name__)

# Applied after all whitespace has been stripped from the line.
HEADER_PATTERN = re.compile(r'^\[([^"\]]+)"?([^"\]]+)?"?\]$')


class ManifestError(Exception):
    """Base error for manifest problems"""


class SectionKindError(ManifestError):
    """A section was used both as a flat section and as a named section"""

    def __init__(self, section, kind, file=None, line=None):
        self.section = section
        self.kind = kind
        self.file = file
        self.line = line

        location = ""
        if file is not None:
            location = " ({}{})".format(file, ", line {}".format(line) if line else "")

        super().__init__("Section '{}' is a {} section{}".format(section, kind, location))


class FlatSection:
    """Unnamed section: variable -> value"""

    kind = "flat"

    def __init__(self):
        self.values = {}

    def __bool__(self):
        return bool(self.values)

    def dump_lines(self, section):
        lines = ["[{}]".format(section)]
        for variable in sorted(self.values):
            lines.append("  {} = {}".format(variable, self.values[variable]))
        return [lines]


class NamedSection:
    """Section made of named records: name -> {variable -> value}"""

    kind = "named"

    def __init__(self):
        self.records = {}

    def __bool__(self):
        return bool(self.records)

    def dump_lines(self, section):
        blocks = []
        for name in sorted(self.records):
            lines = ['[{} "{}"]'.format(section, name)]
            record = self.records[name]
            for variable in sorted(record):
                lines.append("  {} = {}".format(variable, record[variable]))
            blocks.append(lines)
        return blocks


class Manifest:
    """
    In-memory view of one manifest file.

    The file is read lazily: the first accessor or mutator call loads it,
    later calls work on memory only until ``store()`` writes it back.
    """

    def __init__(self, file):
        self.file = Path(file)
        self.loaded = False
        self._sections = {}

    # ------------------------------------------------------------------
    # Loading state
    # ------------------------------------------------------------------

    def ensure_loaded(self):
        """Load the file once per instance"""
        if not self.loaded:
            logger.debug("Manifest initializing: %s", self.file)
            self.load()

    def clear(self):
        """Drop all sections from memory"""
        logger.debug("Clearing manifest settings")
        self._sections = {}

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    def sections(self):
        """Sorted section names"""
        self.ensure_loaded()
        return sorted(self._sections)

    def has_section(self, section):
        self.ensure_loaded()
        return section in self._sections

    def is_named(self, section):
        """True if the section holds named records"""
        self.ensure_loaded()
        return isinstance(self._sections.get(section), NamedSection)

    def keys_of(self, section, name=None):
        """
        Sorted keys of a section or record.

        For a named section without ``name`` these are the record names,
        otherwise the variable names. Missing targets give an empty list.
        """
        return sorted(self.values_of(section, name))

    def values_of(self, section, name=None):
        """
        Copy of the mapping behind a section or record.

        Flat section: {variable: value}. Named section: {name: {variable: value}}.
        Named section with ``name``: {variable: value} of that record.
        """
        self.ensure_loaded()
        current = self._sections.get(section)

        if current is None:
            return {}

        if isinstance(current, NamedSection):
            if name is not None:
                return dict(current.records.get(name, {}))
            return {key: dict(record) for key, record in current.records.items()}

        if name is not None:
            return {}
        return dict(current.values)

    def core_setting(self, section, variable):
        self.ensure_loaded()
        current = self._sections.get(section)
        if isinstance(current, FlatSection):
            return current.values.get(variable)
        return None

    def named_setting(self, section, name, variable):
        self.ensure_loaded()
        current = self._sections.get(section)
        if isinstance(current, NamedSection):
            return current.records.get(name, {}).get(variable)
        return None

    # ------------------------------------------------------------------
    # Mutators
    # ------------------------------------------------------------------

    def _section(self, section, section_type):
        """Get or create a section of the given kind"""
        current = self._sections.get(section)

        if current is None:
            current = section_type()
            self._sections[section] = current
        elif not isinstance(current, section_type):
            raise SectionKindError(section, current.kind)

        return current

    def set_core_setting(self, section, variable, value):
        self.ensure_loaded()
        self._section(section, FlatSection).values[variable] = value
        logger.debug("Setting %s %s to '%s'", section, variable, value)

    def replace_core_settings(self, section, values):
        """Overwrite a flat section; prior variables are dropped"""
        self.ensure_loaded()

        current = self._sections.get(section)
        if current is not None and not isinstance(current, FlatSection):
            raise SectionKindError(section, current.kind)

        if not values:
            self.remove_core_setting(section)
            return

        self._section(section, FlatSection).values = dict(values)
        logger.debug("Overwriting %s with variables: %s", section, values)

    def merge_core_settings(self, section, values):
        """Update only the given variables of a flat section"""
        self.ensure_loaded()

        if not values:
            return

        target = self._section(section, FlatSection).values
        for variable, value in values.items():
            target[variable] = value
            logger.debug("Setting %s %s to '%s'", section, variable, value)

    def set_named_setting(self, section, name, variable, value):
        self.ensure_loaded()
        records = self._section(section, NamedSection).records
        records.setdefault(name, {})[variable] = value
        logger.debug("Setting %s '%s' %s to '%s'", section, name, variable, value)

    def replace_record(self, section, name, values):
        """Overwrite a named record; prior variables are dropped"""
        self.ensure_loaded()

        if not values:
            self.remove_named_setting(section, name)
            return

        self._section(section, NamedSection).records[name] = dict(values)
        logger.debug("Overwriting %s '%s' with variables: %s", section, name, values)

    def merge_into_record(self, section, name, values):
        """Update only the given variables of a named record"""
        self.ensure_loaded()

        if not values:
            return

        record = self._section(section, NamedSection).records.setdefault(name, {})
        for variable, value in values.items():
            record[variable] = value
            logger.debug("Setting %s '%s' %s to '%s'", section, name, variable, value)

    def remove_core_setting(self, section, variable=None):
        """
        Remove a variable, or the whole section when ``variable`` is None.

        The section goes away with its last variable.
        """
        self.ensure_loaded()
        current = self._sections.get(section)

        if current is None:
            return

        if variable is not None:
            if not isinstance(current, FlatSection):
                raise SectionKindError(section, current.kind)

            current.values.pop(variable, None)
            logger.debug("Removing %s %s", section, variable)

            if current:
                return

        del self._sections[section]
        logger.debug("Removing section %s", section)

    def remove_named_setting(self, section, name=None, variable=None):
        """
        Remove a variable of a record, a whole record, or the whole section.

        Empty records and empty sections are removed along the way.
        """
        self.ensure_loaded()
        current = self._sections.get(section)

        if current is None:
            return

        if name is None:
            self.remove_core_setting(section)
            return

        if not isinstance(current, NamedSection):
            raise SectionKindError(section, current.kind)

        record = current.records.get(name)
        if record is None:
            return

        if variable is not None:
            record.pop(variable, None)
            logger.debug("Removing %s '%s' %s", section, name, variable)

            if record:
                return

        del current.records[name]
        logger.debug("Removing %s '%s'", section, name)

        if not current:
            self.remove_core_setting(section)

    # ------------------------------------------------------------------
    # File storage
    # ------------------------------------------------------------------

    def load(self):
        """
        Replace memory with the contents of the manifest file.

        A file that cannot be opened is not an error: the manifest is simply
        empty. Lines that do not parse are dropped and undecodable bytes are
        replaced.
        """
        self.loaded = True
        self.clear()

        logger.info("Loading manifest file: %s", self.file)

        try:
            handle = open(self.file, "r", encoding="utf-8", errors="replace")
        except OSError as e:
            logger.debug("File open failed with error: %s", e)
            return

        with handle:
            self._parse(handle)

        logger.info("Manifest file loaded successfully")

    def _parse(self, lines):
        section = None
        name = None

        for number, line in enumerate(lines, 1):
            line = "".join(line.split())
            if not line:
                continue

            match = HEADER_PATTERN.match(line)
            if match:
                section, name = match.groups()
                self._check_kind(section, name, number)
                logger.debug("Loading section: %s%s", section, " [ {} ]".format(name) if name else "")
                continue

            if section is None or "=" not in line:
                continue

            # Text after a second '=' is discarded.
            variable, value = line.split("=")[:2]

            if name:
                self.set_named_setting(section, name, variable, value)
            else:
                self.set_core_setting(section, variable, value)

    def _check_kind(self, section, name, line):
        current = self._sections.get(section)
        if current is None:
            return

        if (name is not None) != isinstance(current, NamedSection):
            raise SectionKindError(section, current.kind, self.file, line)

    def dumps(self):
        """Serialized manifest text, sorted for stable diffs"""
        self.ensure_loaded()

        blocks = []
        for section in sorted(self._sections):
            blocks.extend(self._sections[section].dump_lines(section))

        return "\n".join("\n".join(lines) + "\n" for lines in blocks)

    def store(self):
        """
        Write memory back to the manifest file.

        An empty manifest has no file representation, so the file is removed.
        Write errors propagate to the caller.
        """
        self.ensure_loaded()

        if not self._sections:
            logger.info("Removing manifest file: %s", self.file)
            if self.file.exists():
                self.file.unlink()
            return

        logger.info("Writing manifest file: %s", self.file)
        content = self.dumps()

        with open(self.file, "w", encoding="utf-8") as f:
            f.write(content)

        logger.info("Manifest file stored successfully")
