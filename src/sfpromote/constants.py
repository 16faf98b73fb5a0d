# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Shared constants describing the metadata tree conventions."""

from __future__ import annotations

from typing import Final

DEFAULT_API_VERSION: Final[str] = "60.0"
DEFAULT_MAX_ITERATIONS: Final[int] = 10
DEFAULT_CATALOG_MAX_AGE_DAYS: Final[int] = 7
DEFAULT_VALIDATION_WAIT_MINUTES: Final[int] = 33

METADATA_NAMESPACE: Final[str] = "http://soap.sforce.com/2006/04/metadata"

PROJECT_DIR_NAME: Final[str] = ".sfpromote"
CATALOG_FILE_NAME: Final[str] = "catalog.json"
PACKAGE_FILE_NAME: Final[str] = "package.xml"
DESTRUCTIVE_FILE_NAME: Final[str] = "destructiveChanges.xml"
INSTRUCTIONS_FILE_NAME: Final[str] = "MANUAL_STEPS.txt"
ITERATIONS_DIR_NAME: Final[str] = "iterations"
PACKAGE_DIR_NAME: Final[str] = "package"

# Optional wrapper directory produced by metadata retrieves.
UNPACKAGED_SEGMENT: Final[str] = "unpackaged"
# Trailing pair of the ``<package>/main/default`` source-format prefix.
SOURCE_ROOT_SUFFIX: Final[tuple[str, str]] = ("main", "default")
NESTED_PARENT_SEGMENT: Final[str] = "objects"
NESTED_PARENT_TYPE: Final[str] = "CustomObject"

BUNDLE_TYPES: Final[frozenset[str]] = frozenset(
    {
        "AuraDefinitionBundle",
        "LightningComponentBundle",
        "StaticResource",
        "ExperienceBundle",
        "DigitalExperienceBundle",
        "WaveTemplateBundle",
    },
)

IN_FOLDER_TYPES: Final[frozenset[str]] = frozenset({"Report", "Dashboard", "Document", "EmailTemplate"})

# Child directories nested under ``objects/<Object>/``; platform describe calls
# only list these by type name so they are merged into every catalog.
NESTED_CHILD_DIRECTORIES: Final[dict[str, str]] = {
    "businessProcesses": "BusinessProcess",
    "compactLayouts": "CompactLayout",
    "fieldSets": "FieldSet",
    "fields": "CustomField",
    "indexes": "Index",
    "listViews": "ListView",
    "recordTypes": "RecordType",
    "sharingReasons": "SharingReason",
    "validationRules": "ValidationRule",
    "webLinks": "WebLink",
}

DEFAULT_DIRECTORY_TYPES: Final[dict[str, str]] = {
    "applications": "CustomApplication",
    "aura": "AuraDefinitionBundle",
    "classes": "ApexClass",
    "components": "ApexComponent",
    "contentassets": "ContentAsset",
    "customMetadata": "CustomMetadata",
    "customPermissions": "CustomPermission",
    "dashboards": "Dashboard",
    "documents": "Document",
    "email": "EmailTemplate",
    "experiences": "ExperienceBundle",
    "flexipages": "FlexiPage",
    "flows": "Flow",
    "globalValueSets": "GlobalValueSet",
    "groups": "Group",
    "labels": "CustomLabels",
    "layouts": "Layout",
    "lwc": "LightningComponentBundle",
    "namedCredentials": "NamedCredential",
    "objects": NESTED_PARENT_TYPE,
    "pages": "ApexPage",
    "permissionsets": "PermissionSet",
    "profiles": "Profile",
    "queues": "Queue",
    "quickActions": "QuickAction",
    "remoteSiteSettings": "RemoteSiteSetting",
    "reports": "Report",
    "standardValueSets": "StandardValueSet",
    "staticresources": "StaticResource",
    "tabs": "CustomTab",
    "triggers": "ApexTrigger",
    "waveTemplates": "WaveTemplateBundle",
    "workflows": "Workflow",
}

MANIFEST_FILE_PREFIXES: Final[tuple[str, ...]] = ("package.xml", "destructiveChanges")

__all__ = [
    "BUNDLE_TYPES",
    "CATALOG_FILE_NAME",
    "DEFAULT_API_VERSION",
    "DEFAULT_CATALOG_MAX_AGE_DAYS",
    "DEFAULT_DIRECTORY_TYPES",
    "DEFAULT_MAX_ITERATIONS",
    "DEFAULT_VALIDATION_WAIT_MINUTES",
    "DESTRUCTIVE_FILE_NAME",
    "IN_FOLDER_TYPES",
    "INSTRUCTIONS_FILE_NAME",
    "ITERATIONS_DIR_NAME",
    "MANIFEST_FILE_PREFIXES",
    "METADATA_NAMESPACE",
    "NESTED_CHILD_DIRECTORIES",
    "NESTED_PARENT_SEGMENT",
    "NESTED_PARENT_TYPE",
    "PACKAGE_DIR_NAME",
    "PACKAGE_FILE_NAME",
    "PROJECT_DIR_NAME",
    "SOURCE_ROOT_SUFFIX",
    "UNPACKAGED_SEGMENT",
]
