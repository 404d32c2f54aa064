from edu_directory_webapp import filter_options_repo
from edu_directory_webapp.db import Institution
from edu_directory_webapp.filter_options_repo import clear_filter_options_cache, fetch_filter_options


def _seed(make_school, make_college):
    make_school(name="Oak School", city="Pune", state="Maharashtra", pattern="CBSE")
    make_school(name="Elm School", city="Pune", state="Maharashtra", pattern="ICSE")
    make_school(name="Hill School", city="Mysuru", state="Karnataka", pattern="CBSE")
    make_college(name="Riverside College", city="Bengaluru", state="Karnataka", fields="Engineering")
    make_college(name="Deccan College", city="Pune", state="Maharashtra", fields="Arts")


def test_school_options(db, make_school, make_college):
    _seed(make_school, make_college)

    options = fetch_filter_options(db, "School")

    assert options == {
        "cities": ["Mysuru", "Pune"],
        "states": ["Karnataka", "Maharashtra"],
        "patterns": ["CBSE", "ICSE"],
    }


def test_college_options(db, make_school, make_college):
    _seed(make_school, make_college)

    options = fetch_filter_options(db, "college")

    assert options == {
        "cities": ["Bengaluru", "Pune"],
        "states": ["Karnataka", "Maharashtra"],
        "fields": ["Arts", "Engineering"],
    }


def test_missing_or_unknown_type_lists_every_location(db, make_school, make_college):
    _seed(make_school, make_college)

    for value in (None, "", "University"):
        options = fetch_filter_options(db, value)
        assert options == {
            "cities": ["Bengaluru", "Mysuru", "Pune"],
            "states": ["Karnataka", "Maharashtra"],
        }


def test_empty_directory(db):
    assert fetch_filter_options(db, "School") == {"cities": [], "states": [], "patterns": []}


def test_cached_options_are_served_until_cleared(db, make_school, monkeypatch):
    monkeypatch.setattr(filter_options_repo, "_CACHE_TTL_SECONDS", 60.0)
    make_school(city="Pune")
    first = fetch_filter_options(db, "School")

    # Written behind the repository's back, so the cache is not invalidated.
    db.add(Institution(name="Raw School", type="School", city="Surat", state="Gujarat"))
    db.commit()

    first["cities"].append("mutated")
    assert fetch_filter_options(db, "School")["cities"] == ["Pune"]

    clear_filter_options_cache()
    assert fetch_filter_options(db, "School")["cities"] == ["Pune", "Surat"]


def test_zero_ttl_disables_cache(db, make_school):
    make_school(city="Pune")
    assert fetch_filter_options(db, None)["cities"] == ["Pune"]

    db.add(Institution(name="Raw School", type="School", city="Surat", state="Gujarat"))
    db.commit()

    assert fetch_filter_options(db, None)["cities"] == ["Pune", "Surat"]
