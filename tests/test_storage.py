from safebite import storage


def test_object_name_layout():
    assert storage.object_name_for("user-1", "fanta.jpg", 1700000000123) == "scans/user-1/1700000000123_fanta.jpg"


def test_object_name_drops_client_paths():
    assert storage.object_name_for("u", "../../etc/passwd", 1) == "scans/u/1_passwd"
    assert storage.object_name_for("u", "C:\\photos\\coke.png", 1) == "scans/u/1_coke.png"
    assert storage.object_name_for("u", "", 1) == "scans/u/1_upload"


def test_public_url():
    assert storage.public_url("scans/u/1_a.jpg") == "https://cdn.example.test/api/image/scans/u/1_a.jpg"
