"""Book catalog endpoints: public reads, admin-only writes."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Response, status

from mylibrary.api.deps import get_book_store
from mylibrary.api.v1.auth import require_admin
from mylibrary.schemas.auth import CurrentUser
from mylibrary.schemas.book import BookCreate, BookRead, BooksListResponse, BookUpdate
from mylibrary.services.books import (
    BookNotFoundError,
    BookStore,
    DuplicateIsbnError,
    InvalidCopyCountError,
)

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("", response_model=BooksListResponse)
def list_books(store: Annotated[BookStore, Depends(get_book_store)]) -> BooksListResponse:
    return BooksListResponse(books=[BookRead.model_validate(b) for b in store.list_all()])


@router.get("/{book_id}", response_model=BookRead)
def get_book(
    book_id: int,
    store: Annotated[BookStore, Depends(get_book_store)],
) -> BookRead:
    try:
        return BookRead.model_validate(store.get(book_id))
    except BookNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message) from e


@router.post("", response_model=BookRead, status_code=status.HTTP_201_CREATED)
def create_book(
    body: BookCreate,
    store: Annotated[BookStore, Depends(get_book_store)],
    admin: Annotated[CurrentUser, Depends(require_admin)],
) -> BookRead:
    try:
        book = store.create(body)
    except DuplicateIsbnError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message) from e
    except InvalidCopyCountError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=e.message
        ) from e
    logger.info("Book created", extra={"book_id": book.id, "admin_id": admin.id})
    return BookRead.model_validate(book)


@router.patch("/{book_id}", response_model=BookRead)
def update_book(
    book_id: int,
    body: BookUpdate,
    store: Annotated[BookStore, Depends(get_book_store)],
    _admin: Annotated[CurrentUser, Depends(require_admin)],
) -> BookRead:
    """Partial update; available_copies is re-checked against total_copies."""
    try:
        return BookRead.model_validate(store.update(book_id, body))
    except BookNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message) from e
    except DuplicateIsbnError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message) from e
    except InvalidCopyCountError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=e.message
        ) from e


@router.delete("/{book_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_book(
    book_id: int,
    store: Annotated[BookStore, Depends(get_book_store)],
    admin: Annotated[CurrentUser, Depends(require_admin)],
) -> Response:
    try:
        store.delete(book_id)
    except BookNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message) from e
    logger.info("Book deleted", extra={"book_id": book_id, "admin_id": admin.id})
    return Response(status_code=status.HTTP_204_NO_CONTENT)
