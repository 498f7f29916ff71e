"""Unit tests for the Kotlin DSL tokenizer and syntax tree."""

import pytest

from droidspec.core.exceptions import GradleSyntaxError
from droidspec.services.parsing.lexer import TokenKind, tokenize
from droidspec.services.parsing.syntax import (
    Assignment,
    Call,
    Declaration,
    ExpressionStatement,
    Index,
    Infix,
    Literal,
    MemberAccess,
    NotNull,
    Reference,
    parse_script,
)


class TestLexer:
    """Tests for tokenization."""

    def test_assignment_tokens(self):
        """Test a simple assignment tokenizes with positions."""
        tokens = tokenize('compileSdk = 35')
        assert [t.kind for t in tokens] == [TokenKind.IDENT, TokenKind.ASSIGN, TokenKind.NUMBER, TokenKind.EOF]
        assert tokens[2].value == "35"
        assert (tokens[2].line, tokens[2].column) == (1, 14)

    def test_comments_are_skipped(self):
        """Test line and block comments produce no tokens."""
        tokens = tokenize('// header\n/* block\ncomment */ minSdk = 21 // trailing')
        assert [t.value for t in tokens[:-1]] == ["minSdk", "=", "21"]
        assert tokens[0].line == 3
        assert tokens[0].newline_before

    def test_newline_tracking(self):
        """Test tokens record whether a line break preceded them."""
        tokens = tokenize('a = 1\nb = 2')
        assert not tokens[1].newline_before
        assert tokens[3].newline_before

    def test_string_escapes(self):
        """Test escape sequences are decoded."""
        tokens = tokenize(r'"a\"b\\c\n\$dA"')
        assert tokens[0].kind == TokenKind.STRING
        assert tokens[0].value == 'a"b\\c\n$dA'
        assert not tokens[0].has_template

    def test_string_templates_detected(self):
        """Test template expressions are flagged, escaped dollars are not."""
        assert tokenize('"${flutter.versionName}"')[0].has_template
        assert tokenize('"$name"')[0].has_template
        assert not tokenize('"\\$name"')[0].has_template
        assert not tokenize('"cost: 5$"')[0].has_template

    def test_raw_string(self):
        """Test triple-quoted strings keep their content verbatim."""
        tokens = tokenize('"""line\\n"quoted" $text"""')
        assert tokens[0].value == 'line\\n"quoted" $text'
        assert tokens[0].has_template

    def test_operators(self):
        """Test compound operators."""
        kinds = [t.kind for t in tokenize('excludes += "a"\n{ x -> x }')]
        assert TokenKind.PLUS_ASSIGN in kinds
        assert TokenKind.ARROW in kinds

    def test_null_safety_operators(self):
        """Test elvis, safe call, not-null and nullable type markers."""
        tokens = tokenize('a ?: b?.c!! as? T?')
        assert [t.kind for t in tokens] == [
            TokenKind.IDENT,
            TokenKind.ELVIS,
            TokenKind.IDENT,
            TokenKind.SAFE_DOT,
            TokenKind.IDENT,
            TokenKind.NOT_NULL,
            TokenKind.IDENT,
            TokenKind.QUESTION,
            TokenKind.IDENT,
            TokenKind.QUESTION,
            TokenKind.EOF,
        ]
        assert tokens[1].column == 3

    def test_backtick_identifier(self):
        """Test backtick-quoted identifiers."""
        tokens = tokenize("`maven-publish`")
        assert tokens[0].kind == TokenKind.IDENT
        assert tokens[0].value == "maven-publish"

    @pytest.mark.parametrize(
        "text,message",
        [
            ('versionName = "1.0', "Unterminated string literal"),
            ("/* open", "Unterminated block comment"),
            ("if (a == b) {}", "Comparison operators are not supported"),
            ("minSdk = 21 # note", "Unexpected character"),
            ('"\\q"', "Invalid escape sequence"),
        ],
    )
    def test_errors(self, text, message):
        """Test malformed input raises GradleSyntaxError."""
        with pytest.raises(GradleSyntaxError) as exc_info:
            tokenize(text)
        assert message in exc_info.value.message
        assert exc_info.value.line == 1


class TestSyntaxParser:
    """Tests for the syntax tree builder."""

    def test_block_with_assignment(self):
        """Test configuration blocks become calls with a body."""
        script = parse_script('android {\n    compileSdk = 35\n}')
        assert len(script.statements) == 1
        statement = script.statements[0]
        assert isinstance(statement, ExpressionStatement)
        call = statement.expr
        assert isinstance(call, Call)
        assert call.name == "android"
        assert call.receiver is None
        assert len(call.body) == 1
        assignment = call.body[0]
        assert isinstance(assignment, Assignment)
        assert assignment.target.dotted == "compileSdk"
        assert assignment.operator == "="
        assert assignment.value == Literal(value=35, line=2, source="35")

    def test_named_block_call(self):
        """Test ``getByName("x") { ... }`` keeps both arguments and body."""
        script = parse_script('getByName("debug") {\n    keyAlias = "key"\n}')
        call = script.statements[0].expr
        assert call.name == "getByName"
        assert call.args[0].value.value == "debug"
        assert isinstance(call.body[0], Assignment)

    def test_qualified_call(self):
        """Test dotted calls split into receiver and name."""
        script = parse_script("languageVersion.set(JavaLanguageVersion.of(17))")
        call = script.statements[0].expr
        assert isinstance(call, Call)
        assert call.qualified_name == "languageVersion.set"
        inner = call.args[0].value
        assert inner.qualified_name == "JavaLanguageVersion.of"
        assert inner.args[0].value.value == 17
        assert inner.source == "JavaLanguageVersion.of(17)"

    def test_reference_chain(self):
        """Test dotted names stay a single reference."""
        script = parse_script("sourceCompatibility = JavaVersion.VERSION_17")
        value = script.statements[0].value
        assert isinstance(value, Reference)
        assert value.parts == ("JavaVersion", "VERSION_17")

    def test_infix_plugin_modifiers(self):
        """Test ``version`` and ``apply`` infix calls on the same line."""
        script = parse_script('id("com.android.application") version "8.5.0" apply false')
        expr = script.statements[0].expr
        assert isinstance(expr, Infix)
        assert expr.operator == "apply"
        assert expr.right.value is False
        assert isinstance(expr.left, Infix)
        assert expr.left.operator == "version"
        assert expr.left.right.value == "8.5.0"
        assert expr.source == 'id("com.android.application") version "8.5.0" apply false'

    def test_index_expression(self):
        """Test indexing parses into an Index node."""
        script = parse_script('signingConfig = signingConfigs["release"]')
        value = script.statements[0].value
        assert isinstance(value, Index)
        assert value.target.dotted == "signingConfigs"
        assert value.index.value == "release"

    def test_cast(self):
        """Test ``as`` and ``as?`` casts keep the type and source."""
        value = parse_script('keyAlias = keystoreProperties["keyAlias"] as String').statements[0].value
        assert isinstance(value, Infix)
        assert value.operator == "as"
        assert isinstance(value.left, Index)
        assert value.right.parts == ("String",)
        assert value.source == 'keystoreProperties["keyAlias"] as String'

        value = parse_script("x = y as? kotlin.String?").statements[0].value
        assert value.operator == "as?"
        assert value.right.dotted == "kotlin.String"
        assert value.source == "y as? kotlin.String?"

    def test_elvis(self):
        """Test elvis binds looser than casts and may start a new line."""
        value = parse_script('storePassword = System.getenv("STORE_PASSWORD") as String? ?: ""').statements[0].value
        assert isinstance(value, Infix)
        assert value.operator == "?:"
        assert value.left.operator == "as"
        assert value.right.value == ""

        value = parse_script('keyAlias = System.getenv("KEY_ALIAS")\n    ?: "upload"').statements[0].value
        assert value.operator == "?:"
        assert value.source == 'System.getenv("KEY_ALIAS")\n    ?: "upload"'

    def test_safe_call_with_lambda(self):
        """Test ``?.let { ... }`` becomes a call on a safe member access."""
        value = parse_script('storeFile = props["storeFile"]?.let { file(it) }').statements[0].value
        assert isinstance(value, Call)
        assert value.name == "let"
        assert isinstance(value.receiver, Index)
        assert value.body[0].expr.name == "file"
        assert value.source == 'props["storeFile"]?.let { file(it) }'

    def test_safe_member_and_not_null(self):
        """Test safe property access and not-null assertions."""
        value = parse_script("a = b?.c").statements[0].value
        assert isinstance(value, MemberAccess)
        assert value.safe
        assert value.target.dotted == "b"

        value = parse_script('a = props["x"]!!').statements[0].value
        assert isinstance(value, NotNull)
        assert isinstance(value.target, Index)
        assert value.source == 'props["x"]!!'

    def test_multiline_arguments(self):
        """Test argument lists can span lines."""
        script = parse_script(
            'proguardFiles(\n    getDefaultProguardFile("proguard-android-optimize.txt"),\n    "proguard-rules.pro"\n)'
        )
        call = script.statements[0].expr
        assert [arg.value.source for arg in call.args] == [
            'getDefaultProguardFile("proguard-android-optimize.txt")',
            '"proguard-rules.pro"',
        ]

    def test_named_arguments(self):
        """Test named call arguments."""
        call = parse_script('exclude(group = "com.google", module = "guava")').statements[0].expr
        assert [(a.name, a.value.value) for a in call.args] == [("group", "com.google"), ("module", "guava")]

    def test_literals(self):
        """Test boolean, null and numeric literal values."""
        body = parse_script("a = true\nb = null\nc = 1_000L\nd = 1.5f").statements
        assert [s.value.value for s in body] == [True, None, 1000, 1.5]

    def test_declarations(self):
        """Test import and val statements."""
        statements = parse_script(
            'import java.util.Properties\nval keystoreProperties = Properties()\nvar count: Int = 1'
        ).statements
        assert statements[0] == Declaration(keyword="import", name="java.util.Properties", line=1)
        assert statements[1].keyword == "val"
        assert statements[1].name == "keystoreProperties"
        assert isinstance(statements[1].value, Call)
        assert statements[2].value.value == 1

    def test_semicolon_separates_statements(self):
        """Test statements on one line separated by semicolons."""
        statements = parse_script("minSdk = 21; targetSdk = 34").statements
        assert [s.target.dotted for s in statements] == ["minSdk", "targetSdk"]

    def test_statements_need_separator(self):
        """Test two statements on one line without a separator are rejected."""
        with pytest.raises(GradleSyntaxError) as exc_info:
            parse_script("minSdk = 21 targetSdk = 34")
        assert "after statement" in exc_info.value.message

    def test_unclosed_block(self):
        """Test a missing closing brace reports end of file."""
        with pytest.raises(GradleSyntaxError) as exc_info:
            parse_script("android {\n    compileSdk = 35\n")
        assert "missing '}'" in exc_info.value.message

    def test_invalid_assignment_target(self):
        """Test assigning to a call result is rejected."""
        with pytest.raises(GradleSyntaxError) as exc_info:
            parse_script('file("a") = "b"')
        assert exc_info.value.message == "Invalid assignment target"

    def test_full_script(self, original_script):
        """Test the framework build script has four top-level blocks."""
        script = parse_script(original_script)
        names = [s.expr.name for s in script.statements]
        assert names == ["plugins", "android", "flutter", "dependencies"]
