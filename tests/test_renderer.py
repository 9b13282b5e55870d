from coldmail.renderer import (
    apply_placeholders,
    build_subject,
    convert_markup,
    full_role_name,
    render,
)


def test_full_role_name_table_and_passthrough():
    assert full_role_name("FSE") == "Full Stack Engineer"
    assert full_role_name("TPM") == "Technical Program Manager"
    assert full_role_name("DataScientist") == "Data Scientist"
    assert full_role_name("Janitor") == "Janitor"


def test_build_subject():
    assert build_subject("ML", "Saloni Ranka") == "Application for Machine Learning Engineer - Saloni Ranka"
    assert build_subject("SRE", "Saloni Ranka") == "Application for SRE - Saloni Ranka"


def test_placeholders_are_literal_and_unknown_ones_stay():
    text = "Hi {NAME} ({NAME}), re: {COMPANY} .* $1"
    out = apply_placeholders(text, {"{NAME}": "Ana", "{POSITION}": "x"})
    assert out == "Hi Ana (Ana), re: {COMPANY} .* $1"


def test_none_value_becomes_empty():
    assert apply_placeholders("[{LINKEDIN}]", {"{LINKEDIN}": None}) == "[]"


def test_bold_and_links():
    assert convert_markup("**a** and **b**") == "<b>a</b> and <b>b</b>"
    assert convert_markup("see [site](https://x.io/p)") == 'see <a href="https://x.io/p">site</a>'


def test_consecutive_bullets_share_one_list():
    out = convert_markup("Intro\n* one\n- two\nBye")
    assert out == "Intro<br><ul><li>one</li><li>two</li></ul><br>Bye"


def test_separate_bullet_runs_get_separate_lists():
    out = convert_markup("* a\n\n* b")
    assert out == "<ul><li>a</li></ul><br><br><ul><li>b</li></ul>"


def test_dash_without_space_is_not_a_bullet():
    assert convert_markup("-5 degrees") == "-5 degrees"


def test_crlf_newlines():
    assert convert_markup("a\r\nb\nc") == "a<br>b<br>c"


def test_render_substitutes_before_markup():
    out = render("Dear {NAME},\n**{POSITION}**", {"{NAME}": "Priya", "{POSITION}": "Backend Developer"})
    assert out == "Dear Priya,<br><b>Backend Developer</b>"
