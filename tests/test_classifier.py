from classifier import EntryClassifier, FallbackPolicy
from models import InstallRecord, Role


def test_token_rules() -> None:
    classifier = EntryClassifier()
    assert classifier.classify_executable("campeditor.exe") is Role.CAMPAIGN_EDITOR
    assert classifier.classify_executable("start85.exe") is Role.CAMPAIGN_GAME
    assert classifier.classify_executable("pzcedit.exe") is Role.SCENARIO_EDITOR
    assert classifier.classify_executable("PzcCamp.EXE") is Role.CAMPAIGN_EDITOR


def test_first_token_wins() -> None:
    classifier = EntryClassifier()
    # Contains both "camp" and "edit"; "camp" is checked first.
    assert classifier.classify_executable("campedit.exe") is Role.CAMPAIGN_EDITOR
    # Short stems still go through the token table first.
    assert classifier.classify_executable("edit.exe") is Role.SCENARIO_EDITOR


def test_stem_length_fallback() -> None:
    classifier = EntryClassifier()
    assert classifier.classify_executable("abcd.exe") is Role.SCENARIO_GAME
    assert classifier.classify_executable("pzc.exe") is Role.SCENARIO_GAME
    assert classifier.classify_executable("KurskDemo.exe") is Role.SCENARIO_GAME
    assert classifier.classify_executable("unins000.exe") is None
    assert classifier.classify_executable("abcde.exe") is None


def test_non_executables_are_ignored() -> None:
    classifier = EntryClassifier()
    assert classifier.classify_executable("camp.txt") is None
    assert classifier.classify_executable("") is None
    assert classifier.classify_executable("C:\\WDS\\Kursk '43\\pzc.exe") is Role.SCENARIO_GAME


def test_install_record_fallback() -> None:
    products = [
        InstallRecord("Kursk '43", "C:\\WDS\\Kursk '43\\Kursk43.exe", None),
        InstallRecord("Moscow '41", "", None),
    ]
    classifier = EntryClassifier(policy=FallbackPolicy.INSTALL_RECORD, products=products)
    assert classifier.classify_executable("kursk43.exe") is Role.SCENARIO_GAME
    assert classifier.classify_executable("moscow.exe") is Role.SCENARIO_GAME
    # Short stems are not enough under this policy.
    assert classifier.classify_executable("abcd.exe") is None
    assert classifier.classify_executable("start85.exe") is Role.CAMPAIGN_GAME


def test_set_products_accepts_generators() -> None:
    classifier = EntryClassifier(policy=FallbackPolicy.INSTALL_RECORD)
    classifier.set_products(record for record in [InstallRecord("Bulge '44", "C:\\WDS\\Bulge '44\\bulge44.exe")])
    assert classifier.classify_executable("bulge44.exe") is Role.SCENARIO_GAME
