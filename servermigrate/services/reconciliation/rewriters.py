"""
Format-aware rewriting of the path fields a service binding tracks.

Each rewriter only touches the fields named by the binding and leaves every
other byte of the file as it was.
"""
import json
import re
from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional, Tuple

from ...core.entities.service_binding import ConfigFormat, PathField, ServiceBinding
from ...core.exceptions.migration_exceptions import ReconcileFailure

_SCRIPT_START = re.compile(r'^\s*(postrotate|prerotate|firstaction|lastaction|preremove)\b')
_SCRIPT_END = re.compile(r'^\s*endscript\b')


def rebase_path(value: str, target_base: str, previous_bases: Iterable[str]) -> Optional[str]:
    """Move ``value`` from under a previous base to under ``target_base``.

    Returns None when ``value`` is not under any previous base, or already
    sits under ``target_base``.
    """
    if value == target_base or value.startswith(target_base.rstrip('/') + '/'):
        return None
    for base in sorted(previous_bases, key=len, reverse=True):
        base = base.rstrip('/')
        if not base or base == target_base:
            continue
        if value == base or value.startswith(base + '/'):
            return target_base + value[len(base):]
    return None


def _field_value(field: PathField, current: Optional[str], target_base: str,
                 previous_bases: Iterable[str]) -> Optional[str]:
    """New value for one field, or None to leave it alone"""
    if field.owned:
        desired = field.target_for(target_base)
        return desired if current != desired else None
    if current is None:
        return None
    return rebase_path(current, target_base, previous_bases)


class ConfigRewriter(ABC):

    @abstractmethod
    def rewrite(self, text: str, binding: ServiceBinding, target_base: str,
                previous_bases: List[str]) -> Tuple[str, List[str]]:
        """Return the new text and the names of the fields that changed"""
        pass

    @abstractmethod
    def extract(self, text: str, binding: ServiceBinding) -> List[str]:
        """Current values of the tracked path fields"""
        pass


class JsonRewriter(ConfigRewriter):
    """Top-level keys of a JSON object (``daemon.json``)"""

    def _load(self, text: str, binding: ServiceBinding) -> Dict:
        try:
            data = json.loads(text) if text.strip() else {}
        except json.JSONDecodeError as e:
            raise ReconcileFailure(binding.service_id, f"invalid JSON ({e.msg} at line {e.lineno})")
        if not isinstance(data, dict):
            raise ReconcileFailure(binding.service_id, "JSON document is not an object")
        return data

    def rewrite(self, text, binding, target_base, previous_bases):
        data = self._load(text, binding)
        changed = []
        for field in binding.fields:
            current = data.get(field.name)
            if current is not None and not isinstance(current, str):
                raise ReconcileFailure(binding.service_id, f"'{field.name}' is not a string")
            new_value = _field_value(field, current, target_base, previous_bases)
            if new_value is not None:
                data[field.name] = new_value
                changed.append(field.name)

        if not changed:
            return text, changed
        return json.dumps(data, indent=2) + "\n", changed

    def extract(self, text, binding):
        data = self._load(text, binding)
        return [data[f.name] for f in binding.fields if isinstance(data.get(f.name), str)]


class IniRewriter(ConfigRewriter):
    """``key=value`` lines (``.npmrc``); missing owned keys are appended"""

    def _pattern(self, name: str):
        return re.compile(r'^(\s*' + re.escape(name) + r'\s*=\s*)(.*?)(\s*)$')

    def rewrite(self, text, binding, target_base, previous_bases):
        lines = text.splitlines(keepends=True)
        changed = []
        for field in binding.fields:
            pattern = self._pattern(field.name)
            index = next((i for i, line in enumerate(lines) if pattern.match(line.rstrip('\r\n'))), None)
            current = None
            if index is not None:
                current = pattern.match(lines[index].rstrip('\r\n')).group(2)

            new_value = _field_value(field, current, target_base, previous_bases)
            if new_value is None:
                continue

            if index is None:
                if lines and not lines[-1].endswith('\n'):
                    lines[-1] += '\n'
                lines.append(f"{field.name}={new_value}\n")
            else:
                line = lines[index]
                ending = line[len(line.rstrip('\r\n')):]
                match = pattern.match(line.rstrip('\r\n'))
                lines[index] = f"{match.group(1)}{new_value}{match.group(3)}{ending}"
            changed.append(field.name)

        return ''.join(lines), changed

    def extract(self, text, binding):
        values = []
        for field in binding.fields:
            pattern = self._pattern(field.name)
            for line in text.splitlines():
                match = pattern.match(line)
                if match:
                    values.append(match.group(2))
                    break
        return values


class _TokenRewriter(ConfigRewriter):
    """Rewrites absolute-path tokens on selected lines."""

    @abstractmethod
    def _candidate_lines(self, lines: List[str]) -> Iterable[int]:
        """Indexes of the lines whose path tokens may be rewritten"""
        pass

    def _path_tokens(self, line: str) -> List[Tuple[int, int, str]]:
        """(start, end, path) for each absolute path token on the line"""
        tokens = []
        for match in re.finditer(r'\S+', line):
            token = match.group(0)
            start = match.start()
            # rsyslog "-/path" (no sync) and quoted logrotate paths
            stripped = token.lstrip('-"').rstrip('"{')
            if stripped.startswith('/'):
                offset = token.index(stripped)
                tokens.append((start + offset, start + offset + len(stripped), stripped))
        return tokens

    def rewrite(self, text, binding, target_base, previous_bases):
        lines = text.splitlines(keepends=True)
        changed = False
        for index in self._candidate_lines(lines):
            line = lines[index]
            for start, end, path in reversed(self._path_tokens(line)):
                new_path = rebase_path(path, target_base, previous_bases)
                if new_path is not None:
                    line = line[:start] + new_path + line[end:]
                    changed = True
            lines[index] = line
        names = [f.name for f in binding.fields] if changed else []
        return ''.join(lines), names

    def extract(self, text, binding):
        lines = text.splitlines(keepends=True)
        return [path for index in self._candidate_lines(lines)
                for _, _, path in self._path_tokens(lines[index])]


class RsyslogRewriter(_TokenRewriter):
    """Action file paths of ``selector  action`` rules"""

    def _candidate_lines(self, lines):
        for index, line in enumerate(lines):
            stripped = line.strip()
            if not stripped or stripped.startswith('#') or stripped.startswith('$'):
                continue
            yield index

    def _path_tokens(self, line):
        # Only the action column, never the selector
        tokens = super()._path_tokens(line)
        return tokens[-1:] if tokens and len(line.split()) > 1 else []


class LogrotateRewriter(_TokenRewriter):
    """Log path lines outside ``{ ... }`` blocks; scripts are left alone"""

    def _candidate_lines(self, lines):
        depth = 0
        in_script = False
        for index, line in enumerate(lines):
            stripped = line.strip()
            if in_script:
                if _SCRIPT_END.match(line):
                    in_script = False
                continue
            if stripped.startswith('#'):
                continue
            if depth == 0 and stripped:
                yield index
            if depth > 0 and _SCRIPT_START.match(line):
                in_script = True
                continue
            depth += line.count('{') - line.count('}')
            depth = max(depth, 0)


_REWRITERS: Dict[ConfigFormat, ConfigRewriter] = {
    ConfigFormat.JSON: JsonRewriter(),
    ConfigFormat.INI: IniRewriter(),
    ConfigFormat.RSYSLOG: RsyslogRewriter(),
    ConfigFormat.LOGROTATE: LogrotateRewriter(),
}


def get_rewriter(config_format: ConfigFormat) -> ConfigRewriter:
    return _REWRITERS[config_format]
