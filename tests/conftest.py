"""Shared fixtures: sample documents and a small coverage catalogue."""

import copy

import pytest

from rulewizard.models import Catalogue


BASIC_POM = """<?xml version="1.0" encoding="UTF-8"?>
<project xmlns="http://maven.apache.org/POM/4.0.0">
    <modelVersion>4.0.0</modelVersion>
    <groupId>com.example</groupId>
    <artifactId>demo</artifactId>
    <version>1.0.0</version>
    <!-- team owned, do not reformat -->
    <properties>
        <maven.compiler.release>21</maven.compiler.release>
    </properties>
</project>
"""

POM_WITH_JACOCO_PROFILE = """<?xml version="1.0" encoding="UTF-8"?>
<project xmlns="http://maven.apache.org/POM/4.0.0">
    <modelVersion>4.0.0</modelVersion>
    <groupId>com.example</groupId>
    <artifactId>demo</artifactId>
    <version>1.0.0</version>
    <properties>
        <maven.compiler.release>21</maven.compiler.release>
    </properties>
    <profiles>
        <profile>
            <id>jacoco</id>
            <properties>
                <custom.setting>team-value</custom.setting>
            </properties>
        </profile>
    </profiles>
</project>
"""

TWO_SPACE_POM = """<?xml version="1.0" encoding="UTF-8"?>
<project>
  <modelVersion>4.0.0</modelVersion>
  <artifactId>two-space</artifactId>
  <properties>
    <existing>1</existing>
  </properties>
</project>
"""

MALFORMED_POM = """<?xml version="1.0"?>
<project>
    <properties>
        <broken>
    </properties>
</project>
"""


COVERAGE_CATALOGUE = {
    "name": "coverage-test",
    "version": "1.0",
    "title": "Coverage test catalogue",
    "questions": [
        {
            "key": "java_version",
            "prompt": "Java release?",
            "options": ["17", "21"],
            "gate": {"not": {"exists": "properties/maven.compiler.release"}},
        },
        {
            "key": "coverage",
            "prompt": "Add code coverage reporting?",
            "options": ["yes", "no"],
        },
        {
            "key": "coverage_threshold",
            "prompt": "Minimum line coverage (%)",
            "pattern": "^(100|[1-9]?[0-9])$",
            "gate": {"answer": "coverage", "equals": "yes"},
        },
        {
            "key": "extras",
            "prompt": "Extra plugins?",
            "multiple": True,
            "options": ["enforcer", "surefire", "none"],
        },
    ],
    "features": [
        {
            "name": "compiler",
            "when": {"answer": "java_version", "in": ["17", "21"]},
            "fragments": [
                {"kind": "property", "name": "maven.compiler.release", "value": "${java_version}"},
            ],
        },
        {
            "name": "coverage",
            "when": {"answer": "coverage", "equals": "yes"},
            "fragments": [
                {"kind": "property", "name": "coverage.level", "value": "${coverage_threshold}"},
                {
                    "kind": "profile",
                    "id": "jacoco",
                    "xml": (
                        "<profile>\n"
                        "    <id>jacoco</id>\n"
                        "    <properties>\n"
                        "        <jacoco.enabled>true</jacoco.enabled>\n"
                        "    </properties>\n"
                        "</profile>\n"
                    ),
                },
            ],
        },
        {
            "name": "enforcer",
            "when": {"answer": "extras", "in": ["enforcer"]},
            "fragments": [
                {
                    "kind": "plugin",
                    "artifact_id": "maven-enforcer-plugin",
                    "xml": (
                        "<plugin>\n"
                        "    <groupId>org.apache.maven.plugins</groupId>\n"
                        "    <artifactId>maven-enforcer-plugin</artifactId>\n"
                        "</plugin>\n"
                    ),
                },
            ],
        },
        {
            "name": "surefire",
            "when": {"answer": "extras", "in": ["surefire"]},
            "fragments": [
                {
                    "kind": "plugin",
                    "artifact_id": "maven-surefire-plugin",
                    "xml": (
                        "<plugin>\n"
                        "    <groupId>org.apache.maven.plugins</groupId>\n"
                        "    <artifactId>maven-surefire-plugin</artifactId>\n"
                        "</plugin>\n"
                    ),
                },
            ],
        },
    ],
}


@pytest.fixture
def basic_pom() -> str:
    return BASIC_POM


@pytest.fixture
def jacoco_pom() -> str:
    return POM_WITH_JACOCO_PROFILE


@pytest.fixture
def two_space_pom() -> str:
    return TWO_SPACE_POM


@pytest.fixture
def malformed_pom() -> str:
    return MALFORMED_POM


@pytest.fixture
def catalogue_data() -> dict:
    """Fresh copy of the raw catalogue mapping, safe to modify."""
    return copy.deepcopy(COVERAGE_CATALOGUE)


@pytest.fixture
def catalogue(catalogue_data) -> Catalogue:
    return Catalogue(**catalogue_data)
