import os
import re
import sys
import xml.etree.ElementTree as ET
from pathlib import Path

MSBUILD_NS = {'ns': 'http://schemas.microsoft.com/developer/msbuild/2003'}
CONFIG_CONDITION = "'$(Configuration)|$(Platform)'"

_IDENTIFIER_RE = re.compile(r'^[A-Za-z_][A-Za-z0-9_]*$')
_UNRESOLVED_MACRO_RE = re.compile(r'\$\([^)]*\)')


class CompDbError(Exception):
    """Base class for every error raised while building a compilation database"""


class ProjectLoadError(CompDbError):
    """A project document could not be read or parsed"""

    def __init__(self, path, reason):
        super().__init__(f"Could not load project {path}: {reason}")
        self.path = str(path)
        self.reason = reason


class ConfigurationNotFoundError(CompDbError, KeyError):
    """A project has no data for the requested configuration"""

    def __init__(self, project_path, config_name, available=None):
        self.project_path = str(project_path)
        self.config_name = config_name
        self.available = list(available or [])
        super().__init__(f"Configuration '{config_name}' not found in {project_path}")

    def __str__(self):
        # KeyError would otherwise quote the whole message
        message = self.args[0]
        if self.available:
            message += f" (available: {', '.join(self.available)})"
        return message


def _condition_config(condition):
    """
    Extract the 'Config|Platform' value from an MSBuild condition such as
    "'$(Configuration)|$(Platform)'=='Debug|Win32'". Returns None for any other condition.
    """
    if CONFIG_CONDITION not in condition:
        return None
    parts = condition.split("'")
    if len(parts) < 4:
        return None
    return parts[3].strip()


def _config_matches(candidate, name):
    """A bare configuration name ('Debug') matches every platform of that configuration"""
    if candidate == name:
        return True
    if '|' not in name:
        return candidate.split('|')[0] == name
    return False


def _split_list(text):
    """Split a semicolon separated MSBuild list, keeping order"""
    if not text:
        return []
    return [item.strip() for item in text.split(';') if item.strip()]


def is_file_excluded(element, ns):
    """Check if a file carries an unconditional ExcludedFromBuild flag"""
    for child in element.findall('ns:ExcludedFromBuild', ns):
        if child.get('Condition'):
            continue
        if child.text and child.text.strip().lower() == 'true':
            return True
    return False


def get_configurations(root, ns):
    """Extract all configurations from the project, in document order"""
    configs = []
    for proj_config in root.findall('.//ns:ProjectConfiguration', ns):
        name = proj_config.get('Include')
        if name and name not in configs:
            configs.append(name)

    # Also check ItemDefinitionGroup for any additional configs
    for item_def in root.findall('.//ns:ItemDefinitionGroup', ns):
        name = _condition_config(item_def.get('Condition', ''))
        if name and name not in configs:
            configs.append(name)

    return configs


def get_project_name(root, ns, fallback_name):
    """Get project name from ProjectName element, or use fallback"""
    for prop_group in root.findall('.//ns:PropertyGroup', ns):
        project_name = prop_group.find('ns:ProjectName', ns)
        if project_name is not None and project_name.text:
            return project_name.text.strip()
    return fallback_name


class Project:
    """A loaded .vcxproj document"""

    def __init__(self, path, root, ns=MSBUILD_NS):
        self.absolute_path = os.path.normpath(os.path.abspath(str(path)))
        self.directory = os.path.dirname(self.absolute_path)
        self.name = get_project_name(root, ns, Path(path).stem)
        self._root = root
        self._ns = ns

    def __repr__(self):
        return f"Project({self.name!r}, {self.absolute_path!r})"

    def configurations(self):
        return get_configurations(self._root, self._ns)

    def find_source_files(self):
        """Return the ClCompile items of the project (paths relative to the project directory)"""
        sources = []
        for item in self._root.findall('.//ns:ItemGroup/ns:ClCompile', self._ns):
            if 'Include' not in item.attrib:
                continue
            if is_file_excluded(item, self._ns):
                continue
            sources.append(item.attrib['Include'].replace('\\', '/'))
        return sources

    def find_config(self, config_name):
        """
        Collect include directories and preprocessor definitions for a configuration.

        Args:
            config_name: 'Config|Platform' (e.g. 'Debug|Win32') or a bare configuration name

        Returns:
            (include_dirs, defines) as two ordered lists of raw entries. MSBuild variables
            and inherited metadata are left in place for the sanitizers.

        Raises:
            ConfigurationNotFoundError: the project does not declare the configuration
        """
        configs = self.configurations()
        if not any(_config_matches(c, config_name) for c in configs):
            raise ConfigurationNotFoundError(self.absolute_path, config_name, configs)

        include_dirs = []
        defines = []
        for item_def in self._root.findall('.//ns:ItemDefinitionGroup', self._ns):
            condition = item_def.get('Condition', '')
            if condition:
                group_config = _condition_config(condition)
                if group_config is None or not _config_matches(group_config, config_name):
                    continue

            compile_settings = item_def.find('ns:ClCompile', self._ns)
            if compile_settings is None:
                continue

            inc_dirs = compile_settings.find('ns:AdditionalIncludeDirectories', self._ns)
            if inc_dirs is not None:
                include_dirs.extend(_split_list(inc_dirs.text))

            defs = compile_settings.find('ns:PreprocessorDefinitions', self._ns)
            if defs is not None:
                defines.extend(_split_list(defs.text))

        return include_dirs, defines


def load_project(vcxproj_path):
    """Read and parse a .vcxproj file, raising ProjectLoadError on any failure"""
    try:
        tree = ET.parse(vcxproj_path)
    except OSError as e:
        raise ProjectLoadError(vcxproj_path, e.strerror or str(e)) from e
    except ET.ParseError as e:
        raise ProjectLoadError(vcxproj_path, f"invalid XML ({e})") from e
    return Project(vcxproj_path, tree.getroot())


def remove_bad_include(value):
    """Drop include entries clang can't use: empty, inherited metadata or unresolved $(...) macros"""
    kept = []
    for item in value.split(';'):
        item = item.strip()
        if not item or item.startswith('%('):
            continue
        if _UNRESOLVED_MACRO_RE.search(item):
            continue
        kept.append(item.replace('\\', '/'))
    return ';'.join(kept)


def remove_bad_definition(value):
    """Drop definitions that are empty, inherited metadata, or whose name is not an identifier"""
    kept = []
    for item in value.split(';'):
        item = item.strip()
        if not item or item.startswith('%('):
            continue
        name = item.split('=', 1)[0]
        if not _IDENTIFIER_RE.match(name):
            continue
        kept.append(item)
    return ';'.join(kept)


def main(argv=None):
    import argparse
    parser = argparse.ArgumentParser(description='Inspect the compile settings of a Visual Studio project')
    parser.add_argument('vcxproj_path', help='Path to the .vcxproj file')
    parser.add_argument('--config', '-c', dest='config',
                        help='Configuration to show (e.g., "Debug|Win32" or Debug)')

    args = parser.parse_args(argv)

    try:
        project = load_project(args.vcxproj_path)
        print(f"Project: {project.name}")
        print(f"  Path: {project.absolute_path}")

        if not args.config:
            print("  Configurations:")
            for config in project.configurations():
                print(f"    {config}")
            print("  Sources:")
            for source in project.find_source_files():
                print(f"    {source}")
            return 0

        include_dirs, defines = project.find_config(args.config)
        print(f"  Configuration: {args.config}")
        print("  Include directories:")
        for inc in filter(None, remove_bad_include(';'.join(include_dirs)).split(';')):
            print(f"    {inc}")
        print("  Definitions:")
        for define in filter(None, remove_bad_definition(';'.join(defines)).split(';')):
            print(f"    {define}")
    except CompDbError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
