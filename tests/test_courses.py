"""
Tests for the course catalog API and store
"""
import pytest

from course_shop.db import CourseStore, UserStore
from course_shop.exceptions import ValidationError
from course_shop.schemas import has_standard_characters


@pytest.fixture
def catalog(db_session):
    store = CourseStore(db_session)
    return [
        store.create(name_en="Fade basics", price={"uah": 100000}, duration=5, difficulty="beginner"),
        store.create(name_en="Scissor over comb", price={"uah": 200000}, duration=10, difficulty="intermediate"),
        store.create(name_en="Competition cuts", price={"uah": 300000}, duration=20, difficulty="advanced"),
    ]


class TestCourseStore:

    def test_filter_equals(self, db_session, catalog):
        courses = CourseStore(db_session).find_all({"difficulty": "advanced"})
        assert [c.name_en for c in courses] == ["Competition cuts"]

    def test_filter_operators(self, db_session, catalog):
        store = CourseStore(db_session)
        assert {c.duration for c in store.find_all({"duration[gte]": "10"})} == {10, 20}
        assert {c.duration for c in store.find_all({"duration[lt]": "10"})} == {5}
        assert {c.duration for c in store.find_all({"duration[gt]": "5", "duration[lte]": "10"})} == {10}

    def test_reserved_keys_ignored(self, db_session, catalog):
        courses = CourseStore(db_session).find_all({"page": "1", "limit": "5", "fields": "name_en", "sort": "x"})
        assert len(courses) == 3

    def test_unknown_filter(self, db_session, catalog):
        with pytest.raises(ValidationError):
            CourseStore(db_session).find_all({"file_id": "secret"})

    def test_bad_filter_value(self, db_session, catalog):
        with pytest.raises(ValidationError):
            CourseStore(db_session).find_all({"duration[gte]": "ten"})

    def test_sort(self, db_session, catalog):
        store = CourseStore(db_session)
        assert [c.duration for c in store.find_all(sort="duration")] == [5, 10, 20]
        assert [c.duration for c in store.find_all(sort="-duration")] == [20, 10, 5]

    def test_unknown_sort(self, db_session, catalog):
        with pytest.raises(ValidationError):
            CourseStore(db_session).find_all(sort="price")

    def test_update_ignores_unknown_fields(self, db_session, catalog):
        course = CourseStore(db_session).find_by_id_and_update(catalog[0].id, {"duration": 6, "id": 999})
        assert course.id == catalog[0].id
        assert course.duration == 6

    def test_missing_ids(self, db_session):
        store = CourseStore(db_session)
        assert store.find_by_id(999) is None
        assert store.find_by_id_and_update(999, {"duration": 1}) is None
        assert store.find_by_id_and_delete(999) is None

    def test_add_purchase_is_a_set(self, db_session, test_user, catalog):
        users = UserStore(db_session)
        assert users.add_purchase(test_user, catalog[0]) is True
        assert users.add_purchase(test_user, catalog[0]) is False
        assert [c.id for c in test_user.purchased_courses] == [catalog[0].id]


class TestStandardCharacters:

    @pytest.mark.parametrize("value", ["Classic cut", "Класична стрижка", "Їжак, ґанок; єнот!", "Level 2 (pro)"])
    def test_accepted(self, value):
        assert has_standard_characters(value)

    @pytest.mark.parametrize("value", ["<script>", "a{b}", "path/to", "emoji 🙂"])
    def test_rejected(self, value):
        assert not has_standard_characters(value)


class TestCoursesAPI:

    def test_list_is_public(self, client, catalog):
        response = client.get("/api/v1/courses")
        assert response.status_code == 200
        data = response.json()
        assert data["results"] == 3
        assert all("file_id" not in c for c in data["data"]["courses"])

    def test_list_filter_sort_fields(self, client, catalog):
        response = client.get("/api/v1/courses?duration[gte]=10&sort=-duration&fields=name_en,duration")
        assert response.status_code == 200
        courses = response.json()["data"]["courses"]
        assert [c["duration"] for c in courses] == [20, 10]
        assert set(courses[0]) == {"id", "name_en", "duration"}

    def test_list_pagination(self, client, catalog):
        response = client.get("/api/v1/courses?sort=duration&limit=2&page=2")
        assert [c["duration"] for c in response.json()["data"]["courses"]] == [20]

    def test_list_bad_filter(self, client, catalog):
        response = client.get("/api/v1/courses?hashed_password=x")
        assert response.status_code == 400

    def test_get_course(self, client, course):
        response = client.get(f"/api/v1/courses/{course.id}")
        assert response.status_code == 200
        assert response.json()["data"]["course"]["name_uk"] == "Класична стрижка"

    def test_get_missing_course(self, client):
        response = client.get("/api/v1/courses/999")
        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"

    def test_create_requires_admin(self, client, auth_headers):
        response = client.post(
            "/api/v1/courses",
            json={"name_en": "New", "price": {"uah": 1000}},
            headers=auth_headers,
        )
        assert response.status_code == 403

    def test_admin_crud(self, client, admin_headers):
        created = client.post(
            "/api/v1/courses",
            json={"name_en": "Razor work", "price": {"UAH": 120000}, "difficulty": "advanced", "fileId": "f1"},
            headers=admin_headers,
        )
        assert created.status_code == 201
        course = created.json()["data"]["course"]
        assert course["price"] == {"uah": 120000}
        assert course["file_id"] == "f1"
        assert "file_id" not in client.get(f"/api/v1/courses/{course['id']}").json()["data"]["course"]

        updated = client.patch(f"/api/v1/courses/{course['id']}", json={"duration": 8}, headers=admin_headers)
        assert updated.status_code == 200
        assert updated.json()["data"]["course"]["duration"] == 8
        assert updated.json()["data"]["course"]["name_en"] == "Razor work"

        deleted = client.delete(f"/api/v1/courses/{course['id']}", headers=admin_headers)
        assert deleted.status_code == 204
        assert client.get(f"/api/v1/courses/{course['id']}").status_code == 404

    def test_create_rejects_markup(self, client, admin_headers):
        response = client.post(
            "/api/v1/courses",
            json={"name_en": "<b>Bold</b>", "price": {"uah": 1000}},
            headers=admin_headers,
        )
        assert response.status_code == 422

    def test_update_cannot_clear_name(self, client, admin_headers, course):
        response = client.patch(f"/api/v1/courses/{course.id}", json={"name_en": None}, headers=admin_headers)
        assert response.status_code == 400

    def test_update_missing(self, client, admin_headers):
        response = client.patch("/api/v1/courses/999", json={"duration": 1}, headers=admin_headers)
        assert response.status_code == 404

    def test_delete_missing(self, client, admin_headers):
        response = client.delete("/api/v1/courses/999", headers=admin_headers)
        assert response.status_code == 404
