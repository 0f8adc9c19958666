from fastapi import status

from carhub import crud
from carhub.auth import get_password_hash
from carhub.schemas import CarCreate, UserRegister


def create_user(db_session, email, role="user"):
    user_in = UserRegister(
        name=email.split("@")[0].title(),
        first_name="Test",
        last_name="User",
        email=email,
        password="secret123",
        password_confirmation="secret123",
    )
    return crud.create_user(db_session, user_in, get_password_hash("secret123"), role=role)


def login(client, email):
    resp = client.post("/auth/login", json={"email": email, "password": "secret123"})
    assert resp.status_code == status.HTTP_200_OK
    return {"Authorization": f"Bearer {resp.json()['access_token']}"}


def add_car(db_session, owner, plate):
    car_in = CarCreate(
        make="Toyota",
        model="Corolla",
        year=2022,
        color="White",
        license_plate=plate,
        mileage=0,
        fuel_type="Gasoline",
        transmission="Automatic",
        price="18500.00",
        status="available",
    )
    return crud.create_car(db_session, car_in, owner.id)


def test_user_routes_require_admin(client, db_session):
    user = create_user(db_session, "standard@example.com")
    headers = login(client, user.email)

    for response in (
        client.get("/users/", headers=headers),
        client.get("/users/statistics", headers=headers),
        client.get(f"/users/{user.id}", headers=headers),
        client.put(f"/users/{user.id}", json={"role": "admin"}, headers=headers),
        client.delete(f"/users/{user.id}", headers=headers),
    ):
        assert response.status_code == status.HTTP_403_FORBIDDEN

    db_session.refresh(user)
    assert user.role == "user"


def test_user_routes_require_authentication(client, db_session):
    assert client.get("/users/").status_code == status.HTTP_401_UNAUTHORIZED


def test_list_users_includes_cars(client, db_session):
    admin = create_user(db_session, "admin@example.com", role="admin")
    owner = create_user(db_session, "owner@example.com")
    add_car(db_session, owner, "ABC-123")

    response = client.get("/users/", headers=login(client, admin.email))
    assert response.status_code == status.HTTP_200_OK
    users = {user["email"]: user for user in response.json()}
    assert set(users) == {"admin@example.com", "owner@example.com"}
    assert [car["license_plate"] for car in users["owner@example.com"]["cars"]] == [
        "ABC-123"
    ]
    assert users["admin@example.com"]["cars"] == []
    assert "hashed_password" not in users["owner@example.com"]


def test_show_user(client, db_session):
    admin = create_user(db_session, "admin@example.com", role="admin")
    owner = create_user(db_session, "owner@example.com")
    headers = login(client, admin.email)

    found = client.get(f"/users/{owner.id}", headers=headers)
    assert found.status_code == status.HTTP_200_OK
    assert found.json()["email"] == owner.email

    missing = client.get("/users/9999", headers=headers)
    assert missing.status_code == status.HTTP_404_NOT_FOUND
    assert missing.json()["detail"] == "User not found"


def test_admin_updates_role_and_profile(client, db_session):
    admin = create_user(db_session, "admin@example.com", role="admin")
    owner = create_user(db_session, "owner@example.com")

    response = client.put(
        f"/users/{owner.id}",
        json={"role": "admin", "phone": "555-0100"},
        headers=login(client, admin.email),
    )
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["role"] == "admin"
    assert response.json()["phone"] == "555-0100"


def test_admin_update_rejects_bad_input(client, db_session):
    admin = create_user(db_session, "admin@example.com", role="admin")
    owner = create_user(db_session, "owner@example.com")
    headers = login(client, admin.email)

    taken = client.put(
        f"/users/{owner.id}", json={"email": admin.email}, headers=headers
    )
    assert taken.status_code == 422
    assert "email" in taken.json()["errors"]

    bad_role = client.put(f"/users/{owner.id}", json={"role": "root"}, headers=headers)
    assert bad_role.status_code == 422
    assert "role" in bad_role.json()["errors"]


def test_admin_cannot_delete_self(client, db_session):
    admin = create_user(db_session, "admin@example.com", role="admin")

    response = client.delete(f"/users/{admin.id}", headers=login(client, admin.email))
    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json()["detail"] == "You cannot delete your own account"
    assert crud.get_user_by_id(db_session, admin.id) is not None


def test_delete_user_removes_their_cars(client, db_session):
    admin = create_user(db_session, "admin@example.com", role="admin")
    owner = create_user(db_session, "owner@example.com")
    car = add_car(db_session, owner, "ABC-123")
    car_id = car.id

    response = client.delete(f"/users/{owner.id}", headers=login(client, admin.email))
    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"message": "User deleted successfully"}

    db_session.expire_all()
    assert crud.get_user_by_id(db_session, owner.id) is None
    assert crud.get_car(db_session, car_id) is None


def test_user_statistics(client, db_session):
    admin = create_user(db_session, "admin@example.com", role="admin")
    owner = create_user(db_session, "owner@example.com")
    create_user(db_session, "idle@example.com")
    add_car(db_session, owner, "ABC-123")

    response = client.get("/users/statistics", headers=login(client, admin.email))
    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {
        "total_users": 3,
        "admin_users": 1,
        "regular_users": 2,
        "users_with_cars": 1,
        "users_without_cars": 2,
    }
