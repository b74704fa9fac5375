"""
Streamlit demo - outfit completion + explanation

Run: streamlit run demo_app.py
"""

import time

import httpx
import streamlit as st

# FastAPI server URL
API_BASE_URL = "http://localhost:8181/ai/v1"
COMPLETE_OUTFIT_URL = f"{API_BASE_URL}/complete-outfit"
EXPLAIN_OUTFIT_URL = f"{API_BASE_URL}/explain-outfit"

MISSIONS = ["smart_casual", "business_casual", "outdoor_rain"]
SLOTS = ["top", "bottom", "shoes", "outerwear"]

st.set_page_config(page_title="Outfit completion demo", page_icon="👔", layout="wide")

st.title("👔 Outfit completion demo")
st.markdown("---")

st.sidebar.header("How it works")
st.sidebar.markdown(
    """
1. The mission decides which slots an outfit needs.
2. Slots already in the cart are skipped.
3. The budget is split equally across the missing slots.
4. Each missing slot is searched by vector similarity,
   filtered by price and eco score.
5. The result is explained in up to 5 bullets.

**Note:** budget 0 and min eco 0 mean "no constraint".
"""
)

col1, col2 = st.columns([1, 2])

with col1:
    st.subheader("Request")
    mission = st.selectbox("Mission", MISSIONS)
    budget = st.number_input("Budget (£)", min_value=0.0, value=90.0, step=5.0)
    min_eco = st.number_input("Min eco score", min_value=0, value=50, step=5)
    cart_slots = st.multiselect("Already in cart", SLOTS, default=["top"])
    limit_per_slot = st.slider("Results per slot", min_value=1, max_value=10, value=3)

    if st.button("🚀 Complete outfit", type="primary", use_container_width=True):
        with col2:
            st.subheader("Result")

            with st.spinner("Searching..."):
                start_time = time.time()

                try:
                    response = httpx.post(
                        COMPLETE_OUTFIT_URL,
                        json={
                            "mission": mission,
                            "budgetGbp": budget,
                            "minEcoScore": min_eco,
                            "cartSlots": cart_slots,
                            "limitPerSlot": limit_per_slot,
                        },
                        timeout=60.0,
                    )
                    response.raise_for_status()
                    outfit = response.json()

                    explain = httpx.post(EXPLAIN_OUTFIT_URL, json=outfit, timeout=60.0)
                    explain.raise_for_status()
                    bullets = explain.json()["bullets"]

                    elapsed_time = time.time() - start_time
                    st.success(f"✅ Done ({elapsed_time:.2f}s)")

                    missing = outfit["missingSlots"]
                    if not missing:
                        st.info("Nothing missing: the cart already completes the outfit.")

                    st.markdown("**Why these picks**")
                    for bullet in bullets:
                        st.markdown(f"- {bullet}")

                    st.markdown("---")

                    for result in outfit["results"]:
                        st.markdown(f"### {result['slot']}")
                        if not result["hits"]:
                            st.warning(result.get("reason") or "No results")
                            continue

                        for hit in result["hits"]:
                            img_col, info_col = st.columns([1, 3])
                            with img_col:
                                if hit.get("thumbnail"):
                                    try:
                                        st.image(hit["thumbnail"], width=120)
                                    except Exception:
                                        st.caption("(no preview)")
                            with info_col:
                                st.markdown(f"**{hit['title'] or hit['productId']}**")
                                st.caption(
                                    f"Eco {hit['ecoScore']} · £{hit['priceGbp']:.2f} · "
                                    f"similarity {hit['similarity']:.1f}"
                                )
                                st.caption(hit["reason"])

                except httpx.HTTPStatusError as e:
                    st.error(f"❌ HTTP error: {e.response.status_code}")
                    st.json(e.response.json())
                except Exception as e:
                    st.error(f"❌ Error: {str(e)}")
