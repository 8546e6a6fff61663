"""
Tests for the pattern validators.
"""

from next_builder.boilerplate import BoilerplateManifest
from next_builder.build_validator import SIG_CLIENT_COMPONENT_HOOK
from next_builder.fixers import FixerRegistry, FixStatus
from next_builder.models import IssueKind
from next_builder.validators import (
    BoilerplateValidator,
    ContentTypeValidator,
    ContextPatternValidator,
    ExportImportValidator,
    PatternValidator,
    context_name_for,
    run_validators,
)

from conftest import make_file_set


class TestContextNames:
    def test_context_directory_variants(self):
        assert context_name_for("src/context/TodoContext.tsx") == "Todo"
        assert context_name_for("contexts/CartContext.ts") == "Cart"
        assert context_name_for("src/app/context/auth/AuthContext.jsx") == "Auth"

    def test_non_context_modules(self):
        assert context_name_for("src/components/TodoContext.tsx") is None
        assert context_name_for("src/context/helpers.ts") is None


class TestContentTypeValidator:
    def test_flags_non_string_content(self):
        file_set = make_file_set({"a.ts": "x", "b.json": {"x": 1}})
        issues = ContentTypeValidator().validate(file_set)
        assert [(i.kind, i.file_path) for i in issues] == [(IssueKind.NON_STRING_CONTENT, "b.json")]


class TestExportImportValidator:
    def test_missing_accessor_reported_once(self, todo_file_set):
        issues = ExportImportValidator().validate(todo_file_set)
        assert len(issues) == 1
        issue = issues[0]
        assert issue.kind == IssueKind.MISSING_IMPORT_TARGET
        assert issue.file_path == "components/List.ts"
        assert issue.target_path == "context/TodoContext.ts"
        assert issue.symbol == "useTodoContext"

    def test_missing_default_export(self):
        file_set = make_file_set({
            "src/app/page.tsx": "import Header from '@/components/Header';\n",
            "src/components/Header.tsx": "export function Header() {}\n",
        })
        issues = ExportImportValidator().validate(file_set)
        assert [i.symbol for i in issues] == ["default"]

    def test_ignores_packages_namespaces_and_unknown_modules(self):
        file_set = make_file_set({
            "src/app/page.tsx": (
                "import { useState } from 'react';\n"
                "import * as utils from '@/lib/utils';\n"
                "import { Button } from '@/components/ui/button';\n"
            ),
            "src/lib/utils.ts": "export const cn = () => '';\n",
        })
        assert ExportImportValidator().validate(file_set) == []

    def test_star_reexport_trusted(self):
        file_set = make_file_set({
            "src/app/page.tsx": "import { Card } from '@/components';\n",
            "src/components/index.ts": "export * from './Card';\n",
        })
        assert ExportImportValidator().validate(file_set) == []

    def test_duplicate_imports_reported_once(self):
        file_set = make_file_set({
            "a.ts": "import { x } from './b';\nimport { x } from './b';\n",
            "b.ts": "export const y = 1;\n",
        })
        assert len(ExportImportValidator().validate(file_set)) == 1


class TestContextPatternValidator:
    def test_requires_container_and_accessor(self):
        file_set = make_file_set({"src/context/CartContext.tsx": (
            "'use client';\n"
            "export const CartContext = createContext(null);\n"
        )})
        issues = ContextPatternValidator().validate(file_set)
        assert [(i.kind, i.symbol) for i in issues] == [(IssueKind.MISSING_EXPORT, "useCartContext")]

    def test_complete_context_module_passes(self):
        file_set = make_file_set({"src/context/CartContext.tsx": (
            '"use client";\n\n'
            "export const CartContext = createContext(null);\n"
            "export function CartProvider({ children }) { return children; }\n"
            "export function useCartContext() { return useContext(CartContext); }\n"
        )})
        assert ContextPatternValidator().validate(file_set) == []

    def test_missing_use_client_directive(self):
        file_set = make_file_set({"src/context/CartContext.tsx": (
            "import { createContext } from 'react';\n"
            "export const CartContext = createContext(null);\n"
            "export function useCartContext() {}\n"
        )})
        issues = ContextPatternValidator().validate(file_set)

        assert len(issues) == 1
        assert issues[0].kind == IssueKind.BUILD_ERROR_SIGNATURE
        assert issues[0].signature_id == SIG_CLIENT_COMPONENT_HOOK
        assert issues[0].file_path == "src/context/CartContext.tsx"

    def test_directive_fixed_before_build(self):
        file_set = make_file_set({"src/context/CartContext.tsx": (
            "export const CartContext = createContext(null);\n"
            "export function useCartContext() {}\n"
        )})
        issue = ContextPatternValidator().validate(file_set)[0]

        assert FixerRegistry().apply(issue, file_set).status == FixStatus.FIXED
        assert file_set.content_of("src/context/CartContext.tsx").startswith("'use client';\n")
        assert ContextPatternValidator().validate(file_set) == []

    def test_declared_provider_must_be_exported(self):
        file_set = make_file_set({"src/context/CartContext.tsx": (
            "'use client';\n"
            "export const CartContext = createContext(null);\n"
            "export function useCartContext() {}\n"
            "const CartProvider = ({ children }) => children;\n"
        )})
        issues = ContextPatternValidator().validate(file_set)
        assert [(i.kind, i.symbol) for i in issues] == [(IssueKind.MISSING_EXPORT, "CartProvider")]

    def test_default_exported_provider_needs_named_export(self):
        file_set = make_file_set({"src/context/CartContext.tsx": (
            "'use client';\n"
            "export const CartContext = createContext(null);\n"
            "export function useCartContext() {}\n"
            "export default function CartProvider({ children }) { return children; }\n"
        )})
        issues = ContextPatternValidator().validate(file_set)
        assert [i.symbol for i in issues] == ["CartProvider"]

    def test_module_without_provider_not_reported(self):
        file_set = make_file_set({"src/context/CartContext.tsx": (
            "'use client';\n"
            "export const CartContext = createContext(null);\n"
            "export function useCartContext() {}\n"
        )})
        assert ContextPatternValidator().validate(file_set) == []


class TestBoilerplateValidator:
    def test_missing_layout_and_globals(self):
        file_set = make_file_set({"src/app/page.tsx": "export default function Page() {}"})
        issues = BoilerplateValidator().validate(file_set)
        assert [i.file_path for i in issues] == ["src/app/layout.tsx", "src/app/globals.css"]
        assert all(i.kind == IssueKind.MISSING_BOILERPLATE for i in issues)

    def test_app_directory_without_src(self):
        file_set = make_file_set({"app/page.tsx": "", "app/layout.tsx": "", "app/globals.css": ""})
        assert BoilerplateValidator().validate(file_set) == []

    def test_app_directory_alongside_other_src_files(self):
        file_set = make_file_set({
            "app/layout.tsx": "",
            "app/globals.css": "",
            "app/page.tsx": "",
            "src/lib/utils.ts": "",
        })
        assert BoilerplateManifest.detect_app_dir(file_set) == "app"
        assert BoilerplateValidator().validate(file_set) == []

    def test_layout_in_any_code_extension(self):
        file_set = make_file_set({
            "src/app/layout.jsx": "",
            "src/app/globals.css": "",
            "src/app/page.jsx": "",
        })
        assert BoilerplateValidator().validate(file_set) == []

    def test_stylesheet_extension_must_match(self):
        file_set = make_file_set({"src/app/layout.tsx": "", "src/app/globals.scss": ""})
        issues = BoilerplateValidator().validate(file_set)
        assert [i.file_path for i in issues] == ["src/app/globals.css"]

    def test_custom_manifest(self):
        manifest = BoilerplateManifest(entries=[("not-found.tsx", "export default function NotFound() {}")])
        issues = BoilerplateValidator(manifest).validate(make_file_set({"src/app/page.tsx": ""}))
        assert [i.file_path for i in issues] == ["src/app/not-found.tsx"]


class RecordingValidator(PatternValidator):
    def __init__(self, name, issues):
        self.name = name
        self.issues = issues

    def validate(self, file_set):
        return list(self.issues)


class TestRunValidators:
    def test_clean_app_has_no_issues(self, clean_app):
        assert run_validators(clean_app) == []

    def test_parallel_and_sequential_agree(self, todo_file_set):
        parallel = run_validators(todo_file_set, parallel=True)
        sequential = run_validators(todo_file_set, parallel=False)
        assert [i.key() for i in parallel] == [i.key() for i in sequential]

    def test_merges_in_validator_order_without_duplicates(self, todo_file_set):
        first = ExportImportValidator().validate(todo_file_set)
        validators = [
            RecordingValidator("one", first),
            RecordingValidator("two", first),
            ContextPatternValidator(),
        ]
        issues = run_validators(todo_file_set, validators)
        assert [i.kind for i in issues] == [IssueKind.MISSING_IMPORT_TARGET, IssueKind.MISSING_EXPORT]

    def test_validators_do_not_modify_file_set(self, todo_file_set):
        before = todo_file_set.copy()
        run_validators(todo_file_set)
        assert todo_file_set == before
