import json
import os
import re
import sys
from dataclasses import asdict, dataclass
from pathlib import Path

from vcxproj2compdb import CompDbError, load_project, remove_bad_definition, remove_bad_include

PROJECT_EXTENSION = '.vcxproj'
DEFAULT_COMPILER = 'clang-cl.exe'

PROJECT_CONFIG_SECTION = 'GlobalSection(ProjectConfigurationPlatforms)'
SOLUTION_CONFIG_SECTION = 'GlobalSection(SolutionConfigurationPlatforms)'
END_SECTION = 'EndGlobalSection'

ACTIVE_CFG = '.ActiveCfg'
BUILD_0 = '.Build.0'

# Project("{kind-guid}") = "Name", "path\to\project.vcxproj", "{project-guid}"
_PROJECT_LINE_RE = re.compile(r'^Project\("\{[^}]+\}"\)\s*=\s*"[^"]+",\s*"([^"]+)",\s*"\{([^}]+)\}"')

# {project-guid}.Debug|x64.ActiveCfg = Debug|Win32
_MAPPING_LINE_RE = re.compile(r'^\{([^}]+)\}\.(.+?)\s*=(.*)$')


class MalformedSolutionError(CompDbError):
    """The solution document is missing required content or has an unterminated section"""


class ProjectNotInSolutionError(CompDbError, KeyError):
    """A project path is not registered in the solution"""

    def __init__(self, project_path):
        self.project_path = project_path
        super().__init__(f"Project {project_path} not found in solution")

    def __str__(self):
        return self.args[0]


@dataclass
class ConfigMapping:
    project_guid: str
    solution_config: str
    project_config: str
    should_build: bool = False


@dataclass(frozen=True)
class CompileCommand:
    directory: str
    file: str
    command: str

    def to_dict(self):
        return asdict(self)


def _section_lines(content, start_marker):
    """
    Return the lines between the first start_marker line and the following EndGlobalSection.
    Returns None when the section is absent; raises MalformedSolutionError if it never ends.
    """
    lines = []
    inside = False
    for raw_line in content.splitlines():
        line = raw_line.strip()
        if not inside:
            if line.startswith(start_marker):
                inside = True
            continue
        if line.startswith(END_SECTION):
            return lines
        lines.append(line)

    if inside:
        raise MalformedSolutionError(f"{start_marker} is not terminated by {END_SECTION}")
    return None


def parse_project_references(content):
    """Extract {relative project path: project guid} for every .vcxproj referenced by the solution"""
    references = {}
    for raw_line in content.splitlines():
        match = _PROJECT_LINE_RE.match(raw_line.strip())
        if not match:
            continue
        path, guid = match.groups()
        # Solution folders and other project kinds are not compiled
        if not path.endswith(PROJECT_EXTENSION):
            continue
        references[path.replace('\\', '/')] = guid

    if not references:
        raise MalformedSolutionError("No project references found in solution")

    return references


def parse_mapping_line(line):
    """
    Parse one ProjectConfigurationPlatforms row.

    Returns (guid, solution_config, project_config, should_build), or None if the row
    is neither an ActiveCfg nor a Build.0 entry.
    """
    match = _MAPPING_LINE_RE.match(line)
    if not match:
        return None
    guid, key, value = match.groups()

    if key.endswith(ACTIVE_CFG):
        solution_config = key[:-len(ACTIVE_CFG)]
        should_build = False
    elif key.endswith(BUILD_0):
        solution_config = key[:-len(BUILD_0)]
        should_build = True
    else:
        # Deploy.0 and friends
        return None

    if not solution_config:
        return None
    return guid, solution_config, value.strip(), should_build


def parse_configuration_mappings(content):
    """
    Build the (project guid, solution config) -> ConfigMapping table.

    Repeated keys are merged: the build flag is OR-ed and the first non-empty project
    configuration is kept.
    """
    mappings = {}
    lines = _section_lines(content, PROJECT_CONFIG_SECTION)
    if lines is None:
        # Single configuration solutions may omit the section entirely
        return mappings

    for line in lines:
        row = parse_mapping_line(line)
        if row is None:
            continue
        guid, solution_config, project_config, should_build = row

        key = (guid, solution_config)
        mapping = mappings.get(key)
        if mapping is None:
            mappings[key] = ConfigMapping(guid, solution_config, project_config, should_build)
            continue

        if should_build:
            mapping.should_build = True
        if not mapping.project_config:
            mapping.project_config = project_config

    return mappings


def parse_solution_configurations(content):
    """List the solution configurations ('Debug|x64', ...) in declaration order"""
    configs = []
    lines = _section_lines(content, SOLUTION_CONFIG_SECTION)
    if lines is None:
        return configs

    for line in lines:
        name = line.split('=', 1)[0].strip()
        if name and name not in configs:
            configs.append(name)
    return configs


class Solution:
    """
    A parsed .sln file and its loaded projects.

    Projects are kept in the order they are referenced by the solution.
    """

    def __init__(self, sln_path, project_loader=load_project):
        sln_path = Path(sln_path)
        self.solution_path = Path(os.path.abspath(sln_path))
        self.solution_dir = self.solution_path.parent

        # Legacy codepage bytes (project names, paths) survive as surrogates
        with open(sln_path, 'r', encoding='utf-8-sig', errors='surrogateescape') as f:
            content = f.read()

        self.project_guids = parse_project_references(content)
        self.config_mappings = parse_configuration_mappings(content)
        self._configurations = parse_solution_configurations(content)

        self.projects = []
        for project_path in self.project_guids:
            # ProjectLoadError propagates: no partial solutions
            self.projects.append(project_loader(self.solution_dir / project_path))

    @property
    def name(self):
        return self.solution_path.stem

    def configurations(self):
        return list(self._configurations)

    def _find_mapping(self, project_path, solution_config):
        guid = self.project_guids.get(project_path)
        if guid is None:
            raise ProjectNotInSolutionError(project_path)
        return self.config_mappings.get((guid, solution_config))

    def get_project_config(self, project_path, solution_config):
        """Project configuration used for project_path when building solution_config"""
        mapping = self._find_mapping(project_path, solution_config)
        if mapping is None:
            # No mapping: the project builds under the same-named configuration
            return solution_config
        return mapping.project_config

    def _registered_path(self, project):
        project_abs = os.path.normpath(str(project.absolute_path))
        for path in self.project_guids:
            if os.path.normpath(str(self.solution_dir / path)) == project_abs:
                return path
        return None

    def get_project_config_by_project(self, project, solution_config):
        """Like get_project_config, but falls back to solution_config for unregistered projects"""
        path = self._registered_path(project)
        if path is None:
            return solution_config
        return self.get_project_config(path, solution_config)

    def should_build(self, project, solution_config):
        """Build.0 flag of the project for solution_config; unmapped projects are built"""
        path = self._registered_path(project)
        if path is None:
            return True
        mapping = self._find_mapping(path, solution_config)
        if mapping is None:
            return True
        return mapping.should_build


def _prefix_flags(joined, flag):
    return ''.join(f'{flag}{entry} ' for entry in joined.split(';') if entry)


def compile_commands(solution, config, compiler=DEFAULT_COMPILER):
    """
    Generate one CompileCommand per source file of every project in the solution.

    Args:
        solution: a loaded Solution
        config: solution configuration to build (e.g. 'Debug|x64')
        compiler: compiler executable placed at the start of every command

    Raises:
        ConfigurationNotFoundError: a project has no data for its resolved configuration
    """
    commands = []
    variables = {'$(SolutionDir)': solution.solution_dir.as_posix() + '/'}

    for project in solution.projects:
        try:
            project_config = solution.get_project_config_by_project(project, config)
        except CompDbError as e:
            print(f"  Warning: {e}, using configuration {config}", file=sys.stderr)
            project_config = config

        project_vars = dict(variables)
        project_vars['$(ProjectDir)'] = Path(project.directory).as_posix() + '/'

        for source in project.find_source_files():
            include_dirs, defines = project.find_config(project_config)

            inc = ';'.join(include_dirs)
            for token, value in project_vars.items():
                inc = inc.replace(token, value)

            def_flags = _prefix_flags(remove_bad_definition(';'.join(defines)), '-D')
            inc_flags = _prefix_flags(remove_bad_include(inc), '-I')

            command = f'{compiler} {def_flags}{inc_flags}-c {source}'
            commands.append(CompileCommand(directory=project.directory, file=source, command=command))

    return commands


def write_compile_commands(commands, output_path):
    """Write the compilation database as JSON"""
    with open(output_path, 'w', encoding='utf-8') as f:
        json.dump([c.to_dict() for c in commands], f, indent=2)
        f.write('\n')


def main(argv=None):
    import argparse
    parser = argparse.ArgumentParser(description='Generate compile_commands.json from a Visual Studio Solution')
    parser.add_argument('sln_path', help='Path to the .sln file')
    parser.add_argument('--config', '-c', dest='config',
                        help='Solution configuration (e.g., "Debug|x64"); defaults to the first one declared')
    parser.add_argument('--output', '-o', dest='output',
                        help='Output file (default: compile_commands.json next to the solution)')
    parser.add_argument('--compiler', default=DEFAULT_COMPILER, help='Compiler executable for the commands')
    parser.add_argument('--list-configs', action='store_true', help='List solution configurations and exit')

    args = parser.parse_args(argv)

    try:
        solution = Solution(args.sln_path)

        if args.list_configs:
            for config in solution.configurations():
                print(config)
            return 0

        config = args.config
        if not config:
            configs = solution.configurations()
            if not configs:
                print("Error: solution declares no configurations, use --config", file=sys.stderr)
                return 1
            config = configs[0]

        print("=" * 60)
        print(f"Solution: {solution.name}")
        print(f"Configuration: {config}")
        print("=" * 60)
        for project in solution.projects:
            project_config = solution.get_project_config_by_project(project, config)
            print(f"  Found project: {project.name} -> {project_config}")

        commands = compile_commands(solution, config, args.compiler)

        output = Path(args.output) if args.output else solution.solution_dir / 'compile_commands.json'
        write_compile_commands(commands, output)
    except (CompDbError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(f"\nWrote {len(commands)} compile commands to {output}")
    return 0


if __name__ == '__main__':
    sys.exit(main())
