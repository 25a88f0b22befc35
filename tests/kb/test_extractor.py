"""
Unit tests for repo_lens.kb.extractor
"""

from __future__ import annotations

JS_SERVICE = """\
const stripe = require('stripe');

/**
 * Processes subscription payments through Stripe integration
 * @param {string} memberId
 */
async function processPayment(memberId, amount) {
  // Charge the customer card via the Stripe API
  return stripe.charge(memberId, amount);
}

const formatPrice = (value, currency = 'USD') => `${currency} ${value}`;

const PLANS = ['free', 'basic', 'premium'];

class PaymentService extends BaseService {
  constructor(options) {
    super(options);
  }

  async refund(chargeId) {
    if (chargeId) {
      return this.api.refund(chargeId);
    }
  }
}

router.get('/members/:id', getMember);
app.post('/payments', authenticate, createPayment);
router.delete('/members/:id', async (req, res) => {
  res.sendStatus(204);
});

module.exports = {
  processPayment,
  PaymentService: PaymentService,
};
"""

PY_MODULE = '''\
"""Billing helpers for the members API."""

from fastapi import APIRouter
import stripe

__all__ = ["charge_member", "Invoice"]

router = APIRouter()


class Invoice(BaseModel):
    """An invoice issued to a paying member."""

    def total(self, tax_rate=0.2):
        return self.amount * (1 + tax_rate)

    async def send(self):
        pass


@router.post("/invoices")
async def charge_member(member_id: str, amount: int):
    # Charge the member through the payment provider
    return await stripe.charge(member_id, amount)
'''

JSX_PAGE = """\
export default function Pricing() {
  return (
    <div title="Membership pricing">
      <h1>Choose the plan that fits you</h1>
      <p>{price}</p>
    </div>
  );
}
"""


# ---------------------------------------------------------------------------
# Scanning helpers
# ---------------------------------------------------------------------------

class TestScanningHelpers:
    def test_find_matching_skips_quoted_brackets(self):
        from repo_lens.kb.extractor import find_matching

        text = "f(a, ')', [b])"
        assert find_matching(text, 1) == len(text) - 1

    def test_find_matching_unbalanced_or_not_a_bracket(self):
        from repo_lens.kb.extractor import find_matching

        assert find_matching("f(a", 1) is None
        assert find_matching("abc", 0) is None
        assert find_matching("abc", 10) is None

    def test_blank_nested_keeps_top_level(self):
        from repo_lens.kb.extractor import blank_nested

        assert blank_nested("a {b {c} d} e") == "a {" + " " * 7 + "} e"

    def test_split_top_level(self):
        from repo_lens.kb.extractor import split_top_level

        parts = split_top_level("a, fn(b, c), {d: 1, e: 2}, 'x,y',")
        assert parts == ["a", "fn(b, c)", "{d: 1, e: 2}", "'x,y'"]

    def test_clean_doc_block(self):
        from repo_lens.kb.extractor import clean_doc_block

        raw = "*\n * First line\n *\n * @param x\n "
        assert clean_doc_block(raw) == "First line\n@param x"


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------

class TestComments:
    def test_js_doc_and_line_comments(self):
        from repo_lens.kb.extractor import extract

        k = extract(JS_SERVICE, "services/payment.js")
        assert k.doc_comments == [
            "Processes subscription payments through Stripe integration\n"
            "@param {string} memberId"
        ]
        assert k.line_comments == ["Charge the customer card via the Stripe API"]

    def test_excluded_and_short_comments_dropped(self):
        from repo_lens.kb.extractor import extract_line_comments

        content = (
            "// eslint-disable-next-line no-console\n"
            "// ok\n"
            "// -----------------\n"
            "const a = 1; // keeps the retry counter bounded\n"
        )
        assert extract_line_comments(content, "a.ts") == ["keeps the retry counter bounded"]

    def test_python_docstrings_and_hash_comments(self):
        from repo_lens.kb.extractor import extract

        k = extract(PY_MODULE, "billing/api.py")
        assert k.doc_comments == [
            "Billing helpers for the members API.",
            "An invoice issued to a paying member.",
        ]
        assert k.line_comments == ["Charge the member through the payment provider"]

    def test_unknown_extension_has_no_line_comments(self):
        from repo_lens.kb.extractor import extract_line_comments

        assert extract_line_comments("// a long enough comment", "notes.txt") == []


# ---------------------------------------------------------------------------
# Code structure
# ---------------------------------------------------------------------------

class TestJavaScriptStructure:
    def test_functions(self):
        from repo_lens.kb.extractor import extract

        funcs = extract(JS_SERVICE, "services/payment.js").functions
        by_name = {f.name: f for f in funcs}
        assert [f.name for f in funcs] == ["processPayment", "formatPrice", "refund"]
        assert by_name["processPayment"].is_async
        assert by_name["processPayment"].params == "memberId, amount"
        assert by_name["formatPrice"].params == "value, currency = 'USD'"
        assert by_name["refund"].parent_class == "PaymentService"
        assert by_name["refund"].is_async

    def test_classes(self):
        from repo_lens.kb.extractor import extract

        classes = extract(JS_SERVICE, "services/payment.js").classes
        assert len(classes) == 1
        cls = classes[0]
        assert cls.name == "PaymentService"
        assert cls.superclass == "BaseService"
        assert cls.methods == ["constructor", "refund"]

    def test_commonjs_exports(self):
        from repo_lens.kb.extractor import extract

        exports = extract(JS_SERVICE, "services/payment.js").exports
        assert exports == {
            "processPayment": "processPayment",
            "PaymentService": "PaymentService",
        }

    def test_es_exports(self):
        from repo_lens.kb.extractor import extract_exports

        content = (
            "export const LIMIT = 10;\n"
            "export async function load() {}\n"
            "export { helper as publicHelper, other };\n"
            "export default App;\n"
        )
        exports = extract_exports(content, "index.ts")
        assert exports["LIMIT"] == "LIMIT"
        assert exports["load"] == "load"
        assert exports["publicHelper"] == "helper"
        assert exports["other"] == "other"
        assert exports["default"] == "App"

    def test_require_import(self):
        from repo_lens.kb.extractor import extract

        imports = extract(JS_SERVICE, "services/payment.js").imports
        assert [i.source for i in imports] == ["stripe"]

    def test_es_imports(self):
        from repo_lens.kb.extractor import extract_imports

        content = "import React, { useState as useS, useEffect } from 'react';\nimport './styles.css';\n"
        imports = extract_imports(content, "App.jsx")
        assert imports[0].source == "react"
        assert imports[0].names == ["default", "useState", "useEffect"]
        assert imports[1].source == "./styles.css"
        assert imports[1].names == []

    def test_routes(self):
        from repo_lens.kb.extractor import extract

        routes = extract(JS_SERVICE, "routes/members.js").api_routes
        assert [(r.method, r.path, r.handler) for r in routes] == [
            ("GET", "/members/:id", "getMember"),
            ("POST", "/payments", "createPayment"),
            ("DELETE", "/members/:id", "<anonymous>"),
        ]

    def test_structured_data(self):
        from repo_lens.kb.extractor import extract

        data = extract(JS_SERVICE, "services/payment.js").structured_data
        assert data == {"PLANS": "['free', 'basic', 'premium']"}


class TestPythonStructure:
    def test_functions_with_parent_class(self):
        from repo_lens.kb.extractor import extract

        funcs = extract(PY_MODULE, "billing/api.py").functions
        summary = [(f.name, f.parent_class, f.is_async) for f in funcs]
        assert summary == [
            ("total", "Invoice", False),
            ("send", "Invoice", True),
            ("charge_member", None, True),
        ]
        assert funcs[0].params == "self, tax_rate=0.2"
        assert funcs[2].params == "member_id: str, amount: int"

    def test_classes(self):
        from repo_lens.kb.extractor import extract

        classes = extract(PY_MODULE, "billing/api.py").classes
        assert [(c.name, c.superclass, c.methods) for c in classes] == [
            ("Invoice", "BaseModel", ["total", "send"]),
        ]

    def test_all_exports_and_imports(self):
        from repo_lens.kb.extractor import extract

        k = extract(PY_MODULE, "billing/api.py")
        assert k.exports == {"charge_member": "charge_member", "Invoice": "Invoice"}
        assert [(i.source, i.names) for i in k.imports] == [
            ("fastapi", ["APIRouter"]),
            ("stripe", []),
        ]

    def test_decorator_route(self):
        from repo_lens.kb.extractor import extract

        routes = extract(PY_MODULE, "billing/api.py").api_routes
        assert [(r.method, r.path, r.handler) for r in routes] == [
            ("POST", "/invoices", "charge_member"),
        ]

    def test_generic_route_decorator_is_any(self):
        from repo_lens.kb.extractor import extract_api_routes

        content = '@app.route("/health")\ndef health():\n    return "ok"\n'
        routes = extract_api_routes(content, "app.py")
        assert [(r.method, r.handler) for r in routes] == [("ANY", "health")]


# ---------------------------------------------------------------------------
# Markup, documents and configuration
# ---------------------------------------------------------------------------

class TestMarkupText:
    def test_text_blocks_deduplicated(self):
        from repo_lens.kb.extractor import extract

        k = extract(JSX_PAGE, "pages/Pricing.jsx")
        assert k.text_blocks == [
            ("inter-tag", "Choose the plan that fits you"),
            ("attribute", "Membership pricing"),
        ]
        assert k.exports == {"default": "Pricing"}

    def test_plain_js_has_no_text_blocks(self):
        from repo_lens.kb.extractor import extract

        assert extract(JS_SERVICE, "services/payment.js").text_blocks == []


class TestDocuments:
    def test_page_with_front_matter(self):
        from repo_lens.kb.extractor import extract

        content = (
            "---\n"
            "title: Memberships\n"
            "description: How paid memberships work\n"
            "tags: [members, billing]\n"
            "---\n"
            "\n"
            "# Memberships\n"
            "\n"
            "Members can upgrade to a paid tier at any time.\n"
            "\n"
            "## Pricing\n"
            "\n"
            "## Cancelling\n"
        )
        page = extract(content, "docs/memberships.md").page
        assert page.title == "Memberships"
        assert page.description == "How paid memberships work"
        assert page.headings == ["Memberships", "Pricing", "Cancelling"]
        assert page.tags == ["members", "billing"]

    def test_page_without_front_matter(self):
        from repo_lens.kb.extractor import extract_page

        page = extract_page("# Guide\n\nIntro paragraph here.\n\n## Setup\n", "guide.md")
        assert page.title == "Guide"
        assert page.description == "Intro paragraph here."
        assert page.headings == ["Guide", "Setup"]

    def test_package_json(self):
        import json

        from repo_lens.kb.extractor import extract

        content = json.dumps({
            "name": "ghost",
            "description": "Publishing platform",
            "scripts": {"dev": "node index.js", "test": "mocha"},
            "dependencies": {"express": "^4.0.0"},
            "devDependencies": {"mocha": "^10.0.0"},
        })
        config = extract(content, "package.json").config
        assert config.format == "package"
        assert config.name == "ghost"
        assert config.description == "Publishing platform"
        assert config.scripts == ["dev", "test"]
        assert config.dependencies == ["express", "mocha"]
        assert "scripts" in config.keys

    def test_pyproject(self):
        from repo_lens.kb.extractor import extract_config

        content = (
            "[project]\n"
            'name = "demo"\n'
            'description = "Demo project"\n'
            'dependencies = ["requests>=2.31", "pyyaml"]\n'
            "\n"
            "[project.scripts]\n"
            'demo = "demo.cli:main"\n'
        )
        config = extract_config(content, "pyproject.toml")
        assert config.format == "package"
        assert config.name == "demo"
        assert config.dependencies == ["requests", "pyyaml"]
        assert config.scripts == ["demo"]

    def test_yaml_and_ini(self):
        from repo_lens.kb.extractor import extract_config

        yml = extract_config("name: site\nport: 8080\n", "config/site.yml")
        assert yml.format == "yaml"
        assert yml.keys == ["name", "port"]
        assert yml.name == "site"

        ini = extract_config("[server]\nport = 80\n\n[db]\nurl = x\n", "setup.cfg")
        assert ini.format == "ini"
        assert ini.keys == ["server", "db"]


# ---------------------------------------------------------------------------
# Orchestration
# ---------------------------------------------------------------------------

class TestExtract:
    def test_empty_content(self):
        from repo_lens.kb.extractor import extract

        k = extract("", "src/a.js")
        assert k.is_empty()
        assert k.file_type == "js"
        assert k.errors == []

    def test_invalid_config_records_error(self):
        from repo_lens.kb.extractor import extract

        k = extract("{not json", "settings.json")
        assert k.config is None
        assert k.errors == ["config"]

    def test_failing_matcher_is_isolated(self, monkeypatch):
        from repo_lens.kb import extractor

        def _boom(content, file_path):
            raise RuntimeError("boom")

        monkeypatch.setattr(extractor, "EXTRACTORS", [
            ("functions", _boom, lambda p: True),
            ("doc_comments", extractor.extract_doc_comments, lambda p: True),
        ])
        k = extractor.extract(JS_SERVICE, "services/payment.js")
        assert k.errors == ["functions"]
        assert k.functions == []
        assert len(k.doc_comments) == 1
