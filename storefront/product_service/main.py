# storefront/product_service/main.py
from fastapi import FastAPI, HTTPException

app = FastAPI(title="Product Service (dev mock)")


PRODUCTS = {
    1: {"id": 1, "name": "iPhone 15 Pro Case", "price": 29.99},
    2: {"id": 2, "name": "Wireless Charging Pad", "price": 39.99},
    3: {"id": 3, "name": "USB-C to Lightning Cable", "price": 19.99},
    4: {"id": 4, "name": "Bluetooth Headphones", "price": 129.99},
    5: {"id": 5, "name": "Mechanical Keyboard", "price": 149.99},
    6: {"id": 6, "name": "Power Bank 20000mAh", "price": 45.99},
    7: {"id": 7, "name": "Screen Protector", "price": 10.00},
    8: {"id": 8, "name": "Smart Plug", "price": 15.99},
    9: {"id": 9, "name": "Phone Ring Holder", "price": 5.50},
}


@app.get("/products/{product_id}")
def get_product(product_id: int):
    product = PRODUCTS.get(product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product
