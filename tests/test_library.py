import pytest

from errors import ErrorKind, LendingError, Reason
from library import Library


def test_create_list_and_get(lib):
    assert lib.list_books() == []

    book = lib.create_book("Ulysses", "James Joyce", "9780199535675")

    assert book.id is not None
    assert book.borrowed is False
    assert lib.get_book(book.id).title == "Ulysses"
    assert [b.isbn for b in lib.list_books()] == ["9780199535675"]


def test_create_duplicate_isbn(lib):
    lib.create_book("Test Book", "Test Author", "1234567890")

    with pytest.raises(LendingError, match="Book with ISBN 1234567890 already exists") as exc:
        lib.create_book("Other Book", "Other Author", "1234567890")

    assert exc.value.kind is ErrorKind.CONFLICT
    assert exc.value.reason is Reason.DUPLICATE_KEY
    assert len(lib.list_books()) == 1


def test_persistence(db_file):
    lib = Library(db_file=db_file)
    book = lib.create_book("Sapiens", "Yuval Noah Harari", "9780099590088")
    member = lib.register_member("Ada", "ada@example.com")
    lib.borrow(book.id, member.id)

    # A new instance reads the same SQLite file
    lib2 = Library()
    assert lib2.get_book(book.id).borrowed is True
    assert [l.book_id for l in lib2.member_loans(member.id)] == [book.id]


def test_update_book(lib):
    book = lib.create_book("Old Title", "Old Author", "1112223334")

    updated = lib.update_book(book.id, "New Title", "New Author", "1112223334")

    assert updated.title == "New Title"
    assert updated.author == "New Author"
    assert lib.get_book(book.id).title == "New Title"


def test_update_book_to_own_isbn_never_conflicts(lib):
    book = lib.create_book("Dune", "Herbert", "111")
    assert lib.update_book(book.id, "Dune Messiah", "Herbert", "111").isbn == "111"


def test_update_book_to_taken_isbn(lib):
    lib.create_book("Dune", "Herbert", "111")
    other = lib.create_book("Emma", "Austen", "222")

    with pytest.raises(LendingError) as exc:
        lib.update_book(other.id, "Emma", "Austen", "111")

    assert exc.value.reason is Reason.DUPLICATE_KEY
    assert lib.get_book(other.id).isbn == "222"


def test_update_book_keeps_borrowed_flag(lib):
    book = lib.create_book("Dune", "Herbert", "111")
    member = lib.register_member("Ada", "ada@example.com")
    lib.borrow(book.id, member.id)

    updated = lib.update_book(book.id, "Dune", "Frank Herbert", "111")

    assert updated.borrowed is True


def test_update_book_not_found(lib):
    with pytest.raises(LendingError) as exc:
        lib.update_book(42, "Title", "Author", "999")
    assert exc.value.kind is ErrorKind.NOT_FOUND
    assert exc.value.reason is Reason.BOOK


def test_delete_book(lib):
    book = lib.create_book("Test", "Author", "123")

    lib.delete_book(book.id)

    with pytest.raises(LendingError) as exc:
        lib.get_book(book.id)
    assert exc.value.reason is Reason.BOOK

    with pytest.raises(LendingError) as exc:
        lib.delete_book(book.id)
    assert exc.value.kind is ErrorKind.NOT_FOUND


def test_delete_borrowed_book_closes_loan(lib):
    book = lib.create_book("Test", "Author", "123")
    member = lib.register_member("Ada", "ada@example.com")
    lib.borrow(book.id, member.id)

    lib.delete_book(book.id)

    assert lib.member_loans(member.id) == []
    # The ISBN is free again
    assert lib.create_book("Test", "Author", "123").borrowed is False


def test_register_and_get_member(lib):
    member = lib.register_member("Grace Hopper", "grace@example.com")

    assert lib.get_member(member.id).email == "grace@example.com"
    assert [m.name for m in lib.list_members()] == ["Grace Hopper"]


def test_register_duplicate_email(lib):
    lib.register_member("Grace", "grace@example.com")

    with pytest.raises(LendingError, match="Member with email grace@example.com already exists") as exc:
        lib.register_member("Other Grace", "grace@example.com")

    assert exc.value.reason is Reason.DUPLICATE_KEY


def test_update_member(lib):
    grace = lib.register_member("Grace", "grace@example.com")
    lib.register_member("Alan", "alan@example.com")

    renamed = lib.update_member(grace.id, "Grace Hopper", "grace@example.com")
    assert renamed.name == "Grace Hopper"

    moved = lib.update_member(grace.id, "Grace Hopper", "hopper@example.com")
    assert moved.email == "hopper@example.com"

    with pytest.raises(LendingError) as exc:
        lib.update_member(grace.id, "Grace Hopper", "alan@example.com")
    assert exc.value.reason is Reason.DUPLICATE_KEY


def test_get_member_not_found(lib):
    with pytest.raises(LendingError) as exc:
        lib.get_member(7)
    assert exc.value.kind is ErrorKind.NOT_FOUND
    assert exc.value.reason is Reason.MEMBER


def test_borrow_return_round_trip(lib):
    book = lib.create_book("Dune", "Herbert", "111")
    member = lib.register_member("Ada", "ada@example.com")
    before = lib.get_book(book.id)

    assert lib.borrow(book.id, member.id).borrowed is True
    assert lib.get_book(book.id).borrowed is True

    returned = lib.return_book(book.id)

    assert returned == before
    assert lib.member_loans(member.id) == []


def test_borrow_twice_conflicts_for_any_member(lib):
    book = lib.create_book("Dune", "Herbert", "111")
    ada = lib.register_member("Ada", "ada@example.com")
    alan = lib.register_member("Alan", "alan@example.com")
    lib.borrow(book.id, ada.id)

    for member in (ada, alan):
        with pytest.raises(LendingError) as exc:
            lib.borrow(book.id, member.id)
        assert exc.value.kind is ErrorKind.CONFLICT
        assert exc.value.reason is Reason.ALREADY_BORROWED

    assert [l.member_id for l in lib.member_loans(ada.id)] == [ada.id]
    assert lib.member_loans(alan.id) == []


def test_return_without_borrow(lib):
    book = lib.create_book("Dune", "Herbert", "111")

    with pytest.raises(LendingError) as exc:
        lib.return_book(book.id)

    assert exc.value.kind is ErrorKind.INVALID_STATE
    assert exc.value.reason is Reason.NOT_BORROWED


def test_member_loans_requires_member(lib):
    with pytest.raises(LendingError) as exc:
        lib.member_loans(99)
    assert exc.value.reason is Reason.MEMBER


def test_in_memory_library_lends_like_sqlite(memory_lib):
    book = memory_lib.create_book("Dune", "Herbert", "111")
    member = memory_lib.register_member("Ada", "ada@example.com")

    assert memory_lib.db_file is None
    assert memory_lib.borrow(book.id, member.id).borrowed is True
    assert [l.book_id for l in memory_lib.member_loans(member.id)] == [book.id]

    with pytest.raises(LendingError) as exc:
        memory_lib.borrow(book.id, member.id)
    assert exc.value.reason is Reason.ALREADY_BORROWED

    assert memory_lib.return_book(book.id).borrowed is False
    assert memory_lib.member_loans(member.id) == []


def test_email_uniqueness_ignores_case(lib):
    member = lib.register_member("Ada", " Ada@Example.com ")
    assert member.email == "ada@example.com"

    with pytest.raises(LendingError) as exc:
        lib.register_member("Imposter", "ada@example.com")
    assert exc.value.reason is Reason.DUPLICATE_KEY

    other = lib.register_member("Alan", "alan@example.com")
    with pytest.raises(LendingError):
        lib.update_member(other.id, "Alan", "ADA@EXAMPLE.COM")
    assert lib.update_member(member.id, "Ada", "ADA@example.com").email == "ada@example.com"
