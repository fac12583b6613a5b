from pathlib import Path

import pytest

VCXPROJ_TEMPLATE = """<?xml version="1.0" encoding="utf-8"?>
<Project DefaultTargets="Build" ToolsVersion="15.0" xmlns="http://schemas.microsoft.com/developer/msbuild/2003">
  <ItemGroup Label="ProjectConfigurations">
    <ProjectConfiguration Include="Debug|Win32">
      <Configuration>Debug</Configuration>
      <Platform>Win32</Platform>
    </ProjectConfiguration>
    <ProjectConfiguration Include="Release|x64">
      <Configuration>Release</Configuration>
      <Platform>x64</Platform>
    </ProjectConfiguration>
  </ItemGroup>
  <PropertyGroup Label="Globals">
    <ProjectName>{name}</ProjectName>
  </PropertyGroup>
  <ItemDefinitionGroup Condition="'$(Configuration)|$(Platform)'=='Debug|Win32'">
    <ClCompile>
      <AdditionalIncludeDirectories>$(SolutionDir)include;..\\common;%(AdditionalIncludeDirectories)</AdditionalIncludeDirectories>
      <PreprocessorDefinitions>WIN32;_DEBUG;%(PreprocessorDefinitions)</PreprocessorDefinitions>
    </ClCompile>
  </ItemDefinitionGroup>
  <ItemDefinitionGroup Condition="'$(Configuration)|$(Platform)' == 'Release|x64'">
    <ClCompile>
      <AdditionalIncludeDirectories>$(ProjectDir)src;$(VCInstallDir)include</AdditionalIncludeDirectories>
      <PreprocessorDefinitions>NDEBUG;VERSION=2</PreprocessorDefinitions>
    </ClCompile>
  </ItemDefinitionGroup>
  <ItemGroup>
    <ClCompile Include="main.cpp" />
    <ClCompile Include="src\\util.cpp" />
    <ClCompile Include="old.cpp">
      <ExcludedFromBuild>true</ExcludedFromBuild>
    </ClCompile>
    <ClCompile Include="debug_only.cpp">
      <ExcludedFromBuild Condition="'$(Configuration)|$(Platform)'=='Release|x64'">true</ExcludedFromBuild>
    </ClCompile>
  </ItemGroup>
  <ItemGroup>
    <ClInclude Include="main.h" />
  </ItemGroup>
</Project>
"""

SLN_TEMPLATE = """
Microsoft Visual Studio Solution File, Format Version 12.00
# Visual Studio Version 17
Project("{{8BC9CEB8-8B4A-11D0-8D11-00A0C91BC942}}") = "app", "app\\app.vcxproj", "{{AAAA-1111}}"
EndProject
Project("{{2150E333-8FDC-42A3-9474-1A3956D46DE8}}") = "Docs", "Docs", "{{FFFF-0000}}"
EndProject
Project("{{8BC9CEB8-8B4A-11D0-8D11-00A0C91BC942}}") = "core", "libs\\core\\core.vcxproj", "{{BBBB-2222}}"
EndProject
Global
	GlobalSection(SolutionConfigurationPlatforms) = preSolution
		Debug|x64 = Debug|x64
		Release|x64 = Release|x64
	EndGlobalSection
	GlobalSection(ProjectConfigurationPlatforms) = postSolution
		{{AAAA-1111}}.Debug|x64.ActiveCfg = Debug|Win32
		{{AAAA-1111}}.Debug|x64.Build.0 = Debug|Win32
		{{AAAA-1111}}.Release|x64.ActiveCfg = Release|x64
		{{AAAA-1111}}.Release|x64.Deploy.0 = Release|x64
		{{BBBB-2222}}.Release|x64.ActiveCfg = Release|x64
		{{BBBB-2222}}.Release|x64.Build.0 = Release|x64
	EndGlobalSection
	GlobalSection(SolutionProperties) = preSolution
		HideSolutionNode = FALSE
	EndGlobalSection
EndGlobal
"""


def write_vcxproj(path: Path, name: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(VCXPROJ_TEMPLATE.format(name=name), encoding="utf-8")
    return path


@pytest.fixture
def vcxproj_file(tmp_path: Path) -> Path:
    return write_vcxproj(tmp_path / "app" / "app.vcxproj", "app")


@pytest.fixture
def solution_file(tmp_path: Path) -> Path:
    """A solution with two C++ projects and a solution folder"""
    write_vcxproj(tmp_path / "app" / "app.vcxproj", "app")
    write_vcxproj(tmp_path / "libs" / "core" / "core.vcxproj", "core")
    sln = tmp_path / "demo.sln"
    sln.write_text(SLN_TEMPLATE.format(), encoding="utf-8")
    return sln
