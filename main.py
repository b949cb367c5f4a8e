import logging
import os
import time
from typing import Optional

from fastapi import Depends, FastAPI, File, Form, Query, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from fastapi.staticfiles import StaticFiles

import auth
import bookings
import catalog
import config
import database
import intake
import payroll
from auth import get_current_admin, get_current_user
from database import get_db
from errors import register_error_handlers
from payments import OrderCreate, PaymentBridge, PaymentVerify, get_payment_bridge
from schemas import BookingCreate, EmployeeCreate, EmployeeUpdate, Service, ServiceUpdate, Testimonial, UserQueryCreate

logging.basicConfig(
    level=config.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("fixease")

# App and CORS
app = FastAPI(title=f"{config.APP_NAME} API")
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
register_error_handlers(app)


@app.middleware("http")
async def log_and_harden(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["X-XSS-Protection"] = "1; mode=block"
    logger.info(
        "%s %s -> %s (%.1f ms)",
        request.method, request.url.path, response.status_code, (time.perf_counter() - start) * 1000,
    )
    return response


@app.on_event("startup")
def startup_event():
    logger.info("Starting %s in %s mode", config.APP_NAME, config.ENVIRONMENT)
    if database.db is not None:
        database.ensure_indexes(database.db)


os.makedirs(config.UPLOAD_DIR, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=config.UPLOAD_DIR), name="uploads")

# Bookings
@app.post("/api/book-service", status_code=201)
def book_service(payload: BookingCreate, db=Depends(get_db)):
    data = bookings.create_booking(db, payload)
    return {"success": True, "message": "Service(s) booked successfully", "data": data}


@app.get("/api/bookings")
def list_bookings(status: Optional[str] = None, service_id: Optional[str] = Query(None, alias="serviceId"),
                  admin=Depends(get_current_admin), db=Depends(get_db)):
    items = bookings.list_bookings(db, status=status, service_id=service_id)
    return {"success": True, "count": len(items), "data": items}


@app.patch("/api/booking/{booking_id}")
def update_booking(booking_id: str, payload: bookings.StatusUpdate,
                   admin=Depends(get_current_admin), db=Depends(get_db)):
    data = bookings.update_booking_status(db, booking_id, payload.status)
    return {"success": True, "message": "Booking status updated successfully", "data": data}


@app.delete("/api/booking/{booking_id}")
def delete_booking(booking_id: str, admin=Depends(get_current_admin), db=Depends(get_db)):
    bookings.delete_booking(db, booking_id)
    return {"success": True, "message": "Booking deleted successfully"}


# Services
@app.get("/api/services")
def list_services(db=Depends(get_db)):
    return catalog.list_services(db)


@app.get("/api/services/category/{category}")
def services_by_category(category: str, db=Depends(get_db)):
    return catalog.list_services(db, category=category)


@app.get("/api/services/{service_id}")
def get_service(service_id: str, db=Depends(get_db)):
    return catalog.get_service(db, service_id)


@app.post("/api/services", status_code=201)
def add_service(
    title: str = Form(...),
    description: str = Form(...),
    price: float = Form(...),
    category: str = Form(...),
    status: str = Form("active"),
    image: Optional[UploadFile] = File(None),
    admin=Depends(get_current_admin),
    db=Depends(get_db),
):
    payload = Service(title=title, description=description, price=price, category=category, status=status)
    return catalog.create_service(db, payload, image, config.UPLOAD_DIR)


@app.put("/api/services/{service_id}")
def edit_service(
    service_id: str,
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    price: Optional[float] = Form(None),
    category: Optional[str] = Form(None),
    status: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None),
    admin=Depends(get_current_admin),
    db=Depends(get_db),
):
    payload = ServiceUpdate(title=title, description=description, price=price, category=category, status=status)
    return catalog.update_service(db, service_id, payload, image, config.UPLOAD_DIR)


@app.delete("/api/services/{service_id}")
def remove_service(service_id: str, admin=Depends(get_current_admin), db=Depends(get_db)):
    catalog.delete_service(db, service_id)
    return {"message": "Service deleted successfully"}


# Employees (payroll ledger)
@app.get("/api/employees")
def list_employees(admin=Depends(get_current_admin), db=Depends(get_db)):
    return payroll.list_employees(db)


@app.post("/api/employees", status_code=201)
def add_employee(payload: EmployeeCreate, admin=Depends(get_current_admin), db=Depends(get_db)):
    return payroll.create_employee(db, payload)


@app.put("/api/employees/reset")
def reset_employees(payload: payroll.MonthlyReset, admin=Depends(get_current_admin), db=Depends(get_db)):
    modified = payroll.monthly_reset(db, payload.current_month_year)
    return {"message": "Employee statuses reset", "modifiedCount": modified}


@app.get("/api/employees/{employee_id}")
def get_employee(employee_id: str, admin=Depends(get_current_admin), db=Depends(get_db)):
    return payroll.get_employee(db, employee_id)


@app.put("/api/employees/{employee_id}")
def edit_employee(employee_id: str, payload: EmployeeUpdate, admin=Depends(get_current_admin), db=Depends(get_db)):
    return payroll.update_employee(db, employee_id, payload)


@app.post("/api/employees/{employee_id}/payments")
def pay_employee(employee_id: str, payload: payroll.PaymentCreate,
                 admin=Depends(get_current_admin), db=Depends(get_db)):
    return payroll.record_payment(db, employee_id, payload.amount)


@app.delete("/api/employees/{employee_id}")
def remove_employee(employee_id: str, admin=Depends(get_current_admin), db=Depends(get_db)):
    payroll.delete_employee(db, employee_id)
    return {"message": "Employee deleted successfully"}


# Testimonials
@app.post("/api/testimonials/", status_code=201)
def add_testimonial(payload: Testimonial, db=Depends(get_db)):
    return {"success": True, "data": intake.submit_testimonial(db, payload)}


@app.get("/api/testimonials/")
def list_testimonials(db=Depends(get_db)):
    return {"success": True, "data": intake.list_testimonials(db)}


# Callback requests
@app.post("/api/user-queries/submit-query", status_code=201)
def submit_query(payload: UserQueryCreate, db=Depends(get_db)):
    return intake.submit_query(db, payload)


@app.get("/api/user-queries/get-all-queries")
def list_queries(admin=Depends(get_current_admin), db=Depends(get_db)):
    return intake.list_queries(db)


@app.patch("/api/user-queries/update-query/{query_id}/status")
def update_query(query_id: str, payload: intake.QueryStatusUpdate,
                 admin=Depends(get_current_admin), db=Depends(get_db)):
    return intake.update_query_status(db, query_id, payload.status)


# Users
@app.post("/api/users/signup", status_code=201)
def user_signup(body: auth.UserSignup, db=Depends(get_db)):
    return {"message": "Signup successful", "success": True, **auth.signup_user(db, body)}


@app.post("/api/users/login")
def user_login(body: auth.Credentials, db=Depends(get_db)):
    return {"message": "Login successful", "success": True, **auth.login_user(db, body)}


@app.post("/api/users/logout")
def user_logout(user=Depends(get_current_user)):
    # Tokens are stateless; the client drops its copy.
    return {"message": "Logout successful", "success": True}


@app.post("/api/users/forget-password")
def forget_password(body: auth.ForgetPassword, db=Depends(get_db)):
    auth.reset_password(db, body)
    return {"message": "Password updated successfully", "success": True}


@app.get("/api/users/get-user-info")
def user_info(user=Depends(get_current_user)):
    return {"message": "User info fetched successfully", "user": auth.public_user(user), "success": True}


@app.get("/api/users/get-all-users")
def all_users(admin=Depends(get_current_admin), db=Depends(get_db)):
    return {"message": "Users fetched successfully", "users": auth.list_users(db), "success": True}


@app.delete("/api/users/{user_id}")
def remove_user(user_id: str, admin=Depends(get_current_admin), db=Depends(get_db)):
    auth.delete_user(db, user_id)
    return {"message": "User deleted successfully", "success": True}


# Admin
@app.post("/api/admin/signup", status_code=201)
def admin_signup(body: auth.AdminSignup, db=Depends(get_db)):
    auth.signup_admin(db, body)
    return {"message": "Signup successfully", "success": True}


@app.post("/api/admin/login")
def admin_login(body: auth.Credentials, db=Depends(get_db)):
    return {"message": "Login successfully", "success": True, **auth.login_admin(db, body)}


# Payments
@app.post("/api/v1/create-order")
def create_order(body: OrderCreate, bridge: PaymentBridge = Depends(get_payment_bridge)):
    return {"success": True, "order": bridge.create_order(body.amount)}


@app.get("/api/v1/getKey")
def get_key(bridge: PaymentBridge = Depends(get_payment_bridge)):
    return {"success": True, "key": bridge.get_key()}


@app.post("/api/v1/verify")
def verify_payment(body: PaymentVerify, bridge: PaymentBridge = Depends(get_payment_bridge)):
    result = bridge.verify_payment(
        body.razorpay_order_id, body.razorpay_payment_id, body.razorpay_signature, body.booking_id
    )
    return {"success": True, "message": "Payment verified successfully", **result}


# Health
@app.get("/test")
def test_database():
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": "✅ Set" if config.DATABASE_URL else "❌ Not Set",
        "database_name": "✅ Set" if config.DATABASE_NAME else "❌ Not Set",
        "connection_status": "Not Connected",
        "collections": [],
    }
    if database.db is not None:
        response["database"] = "✅ Available"
        try:
            response["collections"] = database.db.list_collection_names()[:10]
            response["database"] = "✅ Connected & Working"
            response["connection_status"] = "Connected"
        except Exception as e:
            response["database"] = f"⚠️  Connected but Error: {str(e)[:50]}"
    return response


# Single page app fallback
@app.get("/{full_path:path}", include_in_schema=False)
def client_app(full_path: str):
    if full_path == "api" or full_path.startswith("api/"):
        return JSONResponse(status_code=404, content={"error": "API endpoint not found"})
    dist = os.path.realpath(config.CLIENT_DIST)
    index = os.path.join(dist, "index.html")
    if not os.path.isfile(index):
        return {"name": config.APP_NAME, "status": "ok"}
    asset = os.path.realpath(os.path.join(dist, full_path))
    if full_path and asset.startswith(dist + os.sep) and os.path.isfile(asset):
        return FileResponse(asset)
    return FileResponse(index, headers={"Cache-Control": "no-store"})


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
